from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SensorSnapshot(BaseModel):
    model_config = ConfigDict(extra="allow")

    moisture_pct: float = Field(..., description="Soil moisture in percent")
    temperature_c: float = Field(..., description="Air temperature in degrees Celsius")
    weather_condition: str
    weather_rain_mm: float
    weather_wind_speed: float = Field(..., description="Wind speed in m/s")


class WeeklySummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    avg_moisture: float | None = None
    trend: str | None = None


class LocalDetection(BaseModel):
    model_config = ConfigDict(extra="allow")

    severity: str | None = None
    score: float | None = None


class AnalyzeRequest(BaseModel):
    current: SensorSnapshot
    weekly_summary: WeeklySummary | None = None
    local_detection: LocalDetection | None = None


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    ERROR = "error"


class AnalysisVerdict(BaseModel):
    # Extra keys returned by the model alongside a valid verdict pass through.
    model_config = ConfigDict(extra="allow")

    severity: Severity
    analysis: str = Field(..., validation_alias=AliasChoices("analysis", "summary"))
    notes: list[str] = Field(default_factory=list)

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v]
        return v
