"""
Server entry point: FastAPI app setup and route configuration.
Streams tracking runs over SSE and exposes the ARD comparison as JSON.
"""

from __future__ import annotations

import contextlib
import os
from collections.abc import AsyncGenerator

import dotenv
import fastapi
import pydantic
import uvicorn
from fastapi.middleware import cors
from starlette import responses

from ga4_audit import config as config_mod
from ga4_audit.data import loader
from ga4_audit.pipeline import stream
from ga4_audit.reporting import comparison_report
from ga4_audit.utils import errors, logger, serialization

dotenv.load_dotenv()

log = logger.create_logger("Server")

HOST = os.environ.get("UVICORN_HOST", "0.0.0.0")
PORT = int(os.environ.get("UVICORN_PORT", "3001"))
IS_PRODUCTION = os.environ.get("ENVIRONMENT", "development") == "production"


@contextlib.asynccontextmanager
async def lifespan(_app: fastapi.FastAPI) -> AsyncGenerator[None]:
    """Log server start on startup."""
    log.section("GA4 Audit Server Started")
    log.info("Environment", {"env": "production" if IS_PRODUCTION else "development"})
    yield


app = fastapi.FastAPI(title="GA4 Audit Server", lifespan=lifespan)

# ============================================================================
# Middleware
# ============================================================================

app.add_middleware(
    cors.CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# API Routes
# ============================================================================


class CompareRequest(pydantic.BaseModel):
    """Paths (on the server) of a results file and an ARD CSV."""

    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)

    results_file: str
    ard_file: str


@app.get("/api/track-stream")
async def track_endpoint(
    url: str = fastapi.Query(..., description="The URL to test"),
    form_config: str | None = fastapi.Query(None, alias="formConfig", description="Form definition name"),
    click_pause: int | None = fastapi.Query(None, alias="clickPause", description="Click window in ms"),
    max_clicks: int | None = fastapi.Query(None, alias="maxClicks", description="Element limit"),
) -> responses.StreamingResponse:
    """
    Run a tracking run on a URL with streaming progress via SSE.
    """
    log.info("Incoming tracking request", {"url": url, "formConfig": form_config})
    try:
        cfg = config_mod.with_click_pause(config_mod.load_config(headless=True), click_pause)
        cfg = config_mod.with_max_clicks(cfg, max_clicks)
        definition = loader.load_form_definition(form_config) if form_config else None
    except errors.ConfigurationError as exc:
        raise fastapi.HTTPException(status_code=400, detail=errors.get_error_message(exc)) from exc

    async def event_generator():
        async for event_str in stream.track_url_stream(url, cfg, form_definition=definition):
            yield event_str

    return responses.StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "Access-Control-Allow-Origin": "*",
        },
    )


@app.post("/api/compare")
async def compare_endpoint(request: CompareRequest) -> dict:
    """Compare a results file against an ARD and return the outcome."""
    try:
        outcome, site_url = comparison_report.compare_files(request.results_file, request.ard_file)
    except errors.ConfigurationError as exc:
        raise fastapi.HTTPException(status_code=400, detail=errors.get_error_message(exc)) from exc
    return comparison_report.build_document(
        outcome, site_url=site_url, results_path=request.results_file, ard_path=request.ard_file
    )


@app.get("/api/forms")
async def forms_endpoint() -> dict:
    """Names of the form definitions shipped with the package."""
    return {"forms": loader.packaged_forms()}


# ============================================================================
# Start Server
# ============================================================================


def main() -> None:
    """Entry point for running the server."""
    log.success(f"Server listening on {HOST}:{PORT}")
    uvicorn.run(
        "ga4_audit.main:app",
        host=HOST,
        port=PORT,
        reload=not IS_PRODUCTION,
    )


if __name__ == "__main__":
    main()
