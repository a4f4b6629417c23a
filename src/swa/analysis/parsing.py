from __future__ import annotations

from typing import Any

import orjson
from pydantic import ValidationError

from swa.api.schemas import AnalysisVerdict, Severity
from swa.errors import ModelOutputParseError


FALLBACK_SEVERITY = Severity.MEDIUM

# Alternate vocabulary some dashboards/prompts use.
SEVERITY_ALIASES: dict[str, Severity] = {
    "ok": Severity.LOW,
    "warning": Severity.MEDIUM,
    "critical": Severity.CRITICAL,
    "error": Severity.ERROR,
}


def normalize_severity(value: Any) -> tuple[Severity, bool]:
    """Map a model-supplied severity onto the enum.

    Returns the severity and whether it had to be coerced to the fallback.
    """
    if isinstance(value, str):
        key = value.strip().lower()
        try:
            return Severity(key), False
        except ValueError:
            pass
        if key in SEVERITY_ALIASES:
            return SEVERITY_ALIASES[key], False
    return FALLBACK_SEVERITY, True


def parse_verdict(text: str) -> AnalysisVerdict:
    try:
        raw = orjson.loads(text)
    except orjson.JSONDecodeError as exc:
        raise ModelOutputParseError("completion is not valid JSON") from exc

    if not isinstance(raw, dict):
        raise ModelOutputParseError("completion JSON is not an object")

    data = dict(raw)
    severity, coerced = normalize_severity(data.get("severity"))
    data["severity"] = severity

    try:
        verdict = AnalysisVerdict.model_validate(data)
    except ValidationError as exc:
        raise ModelOutputParseError(f"completion does not match verdict schema: {exc.error_count()} error(s)") from exc

    if coerced:
        verdict.notes.append(f"unrecognized severity {raw.get('severity')!r}")
    return verdict


def fallback_verdict(text: str) -> AnalysisVerdict:
    return AnalysisVerdict(severity=FALLBACK_SEVERITY, analysis=text, notes=[])


def error_verdict(analysis: str, *notes: str) -> AnalysisVerdict:
    return AnalysisVerdict(severity=Severity.ERROR, analysis=analysis, notes=list(notes))
