from __future__ import annotations

import orjson
from pydantic import BaseModel

from swa.api.schemas import AnalyzeRequest


RETURN_SHAPE = """{
  "severity": "low|medium|high|critical",
  "analysis": "short explanation",
  "notes": ["factor1", "factor2"]
}"""


def _render(section: BaseModel | None) -> str:
    if section is None:
        return "not provided"
    data = section.model_dump(mode="json", exclude_none=True)
    return orjson.dumps(data, option=orjson.OPT_INDENT_2).decode("utf-8")


def build_prompt(req: AnalyzeRequest) -> str:
    return (
        "You are the anomaly-detection AI for a smart watering system.\n"
        "Analyze:\n"
        "\n"
        "Current reading:\n"
        f"{_render(req.current)}\n"
        "\n"
        "Weekly summary:\n"
        f"{_render(req.weekly_summary)}\n"
        "\n"
        "Local detection:\n"
        f"{_render(req.local_detection)}\n"
        "\n"
        "Return only JSON, no other text:\n"
        f"{RETURN_SHAPE}\n"
    )
