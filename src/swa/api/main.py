import logging

import orjson
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from swa.analysis.parsing import error_verdict
from swa.analysis.service import AnalysisService
from swa.api.schemas import AnalysisVerdict, AnalyzeRequest
from swa.config import settings


logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Smart Watering AI", version="0.1.0")

# The dashboard is served from a different origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: AnalysisService | None = None


def _verdict_response(verdict: AnalysisVerdict, status_code: int = 200) -> Response:
    try:
        content = orjson.dumps(verdict.model_dump(mode="json"))
    except (TypeError, ValueError):
        logger.exception("Verdict could not be serialized")
        fallback = error_verdict("Server error.", "verdict could not be serialized")
        content = orjson.dumps(fallback.model_dump(mode="json"))
        status_code = 500
    return Response(
        content=content,
        status_code=status_code,
        media_type="application/json",
    )


@app.on_event("startup")
async def _startup() -> None:
    global _service
    _service = AnalysisService(settings)
    await _service.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
    global _service
    if _service is not None:
        await _service.stop()


@app.exception_handler(RequestValidationError)
async def _invalid_payload(request: Request, exc: RequestValidationError) -> Response:
    notes = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        notes.append(f"{loc or 'body'}: {err.get('msg', 'invalid value')}")
    logger.info("Rejected payload on %s: %s", request.url.path, notes)
    return _verdict_response(error_verdict("Invalid request payload.", *notes), status_code=422)


@app.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Smart Watering AI backend is running."


@app.get("/health")
async def health() -> dict:
    return {
        "status": "ok",
        "upstream_configured": _service is not None and _service.upstream_configured,
    }


@app.post("/api/analyze")
async def analyze(req: AnalyzeRequest) -> Response:
    logger.info("AI request received.")
    logger.debug("Payload: %s", req.model_dump(mode="json"))

    if _service is None:
        return _verdict_response(error_verdict("Service not ready."), status_code=500)

    verdict, status_code = await _service.analyze(req)
    return _verdict_response(verdict, status_code)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
