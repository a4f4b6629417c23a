from __future__ import annotations

import argparse
import json
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np


@dataclass
class Reading:
    moisture_pct: float
    temperature_c: float
    weather_condition: str
    weather_rain_mm: float
    weather_wind_speed: float


def generate(*, hours: int = 168, seed: int = 7, dry_spell: bool = False) -> list[Reading]:
    rng = np.random.default_rng(seed)
    t = np.arange(hours, dtype=float)

    temperature = 22.0 + 6.0 * np.sin(2 * np.pi * (t - 9) / 24) + rng.normal(0, 0.5, size=hours)
    wind = np.clip(3.0 + rng.normal(0, 1.2, size=hours), 0.0, None)
    rain = np.where(rng.random(hours) < 0.06, rng.gamma(2.0, 1.5, size=hours), 0.0)

    # Moisture drains with heat and recovers with rain.
    moisture = np.empty(hours, dtype=float)
    level = 45.0
    for i in range(hours):
        level += 1.8 * rain[i] - 0.04 * max(temperature[i] - 15.0, 0.0) + rng.normal(0, 0.3)
        level = float(np.clip(level, 0.0, 100.0))
        moisture[i] = level

    if dry_spell:
        idx = int(hours * 0.85)
        rain[idx:] = 0.0
        temperature[idx:] += 6.0
        moisture[idx:] = np.clip(moisture[idx:] - np.linspace(5.0, 25.0, hours - idx), 0.0, 100.0)

    out: list[Reading] = []
    for i in range(hours):
        if rain[i] > 0:
            condition = "rain"
        elif temperature[i] > 24.0:
            condition = "sunny"
        else:
            condition = "cloudy"
        out.append(
            Reading(
                moisture_pct=round(float(moisture[i]), 1),
                temperature_c=round(float(temperature[i]), 1),
                weather_condition=condition,
                weather_rain_mm=round(float(rain[i]), 1),
                weather_wind_speed=round(float(wind[i]), 1),
            )
        )
    return out


def moisture_trend(moisture: np.ndarray, *, dead_band: float = 0.05) -> str:
    if moisture.size < 2:
        return "stable"
    slope = float(np.polyfit(np.arange(moisture.size, dtype=float), moisture, 1)[0])
    if slope > dead_band:
        return "rising"
    if slope < -dead_band:
        return "falling"
    return "stable"


def local_detection(moisture: np.ndarray) -> dict[str, Any]:
    mu = float(np.mean(moisture)) if moisture.size else 0.0
    sigma = float(np.std(moisture)) + 1e-9
    z = abs(float(moisture[-1]) - mu) / sigma if moisture.size else 0.0

    if z >= 3.5:
        severity = "critical"
    elif z >= 2.5:
        severity = "high"
    elif z >= 1.5:
        severity = "medium"
    else:
        severity = "low"
    return {"severity": severity, "score": round(z, 3)}


def build_payload(readings: list[Reading]) -> dict[str, Any]:
    if not readings:
        raise ValueError("at least one reading is required")

    moisture = np.array([r.moisture_pct for r in readings], dtype=float)
    return {
        "current": asdict(readings[-1]),
        "weekly_summary": {
            "avg_moisture": round(float(np.mean(moisture)), 2),
            "trend": moisture_trend(moisture),
        },
        "local_detection": local_detection(moisture),
    }


def main() -> None:
    p = argparse.ArgumentParser(description="Print a sample /api/analyze request body.")
    p.add_argument("--hours", type=int, default=168)
    p.add_argument("--seed", type=int, default=7)
    p.add_argument("--dry-spell", action="store_true")
    args = p.parse_args()

    readings = generate(hours=args.hours, seed=args.seed, dry_spell=args.dry_spell)
    print(json.dumps(build_payload(readings), indent=2))


if __name__ == "__main__":
    main()
