from __future__ import annotations

import asyncio
import errno
import itertools
import logging
import socket
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles

from flashrelay.bootstrap import build_config, build_provider, build_resolver, rates_for
from flashrelay.core.errors import ConfigurationError, UpstreamError, ValidationError
from flashrelay.core.framing import LineFramer, frame_stream
from flashrelay.core.models import GenerationRequest
from flashrelay.core.usage import ProviderRates, UsageSummary, log_cost
from flashrelay.faults import install_loop_handler

logger = logging.getLogger(__name__)

GENERATE_ERROR = "Failed to generate flashcards"


def _error(status: int, error: str, details: Any = None) -> JSONResponse:
    body: Dict[str, Any] = {"error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status)


def _relay(
    fragments: Iterator[str],
    usage: UsageSummary,
    *,
    provider_name: str,
    rates: ProviderRates,
    started: float,
) -> Iterator[str]:
    """
    Response body: validated NDJSON lines, each written as soon as it is
    framed. A mid-stream upstream failure ends the body early; lines already
    sent stay sent.
    """
    framer = LineFramer()
    try:
        for line in frame_stream(fragments, framer):
            yield line
    except UpstreamError as e:
        logger.error("Upstream stream failed after %d cards: %s", framer.card_count, e)
        return
    logger.info("Stream completed with %d cards in %dms", framer.card_count, (time.monotonic() - started) * 1000)
    log_cost(provider_name, usage, rates)


@asynccontextmanager
async def lifespan(app: FastAPI):
    install_loop_handler(asyncio.get_running_loop())
    logger.info("Provider: %s (%s)", app.state.provider_name, app.state.model_name)
    yield


def create_app(
    config_path: Optional[Path] = None,
    *,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> FastAPI:
    cfg = build_config(config_path, provider=provider, model=model)
    resolver = build_resolver(cfg)
    provider_name = cfg["model"]["provider"]
    rates = rates_for(cfg)

    app = FastAPI(title="flashrelay", lifespan=lifespan)
    app.state.cfg = cfg
    app.state.provider_name = provider_name
    app.state.model_name = cfg["providers"][provider_name]["name"]
    app.state.rates = rates

    base_dir = Path(__file__).resolve().parent
    static_dir = base_dir / "static"
    index_path = base_dir / "index.html"

    app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def on_bad_body(_request: Request, exc: RequestValidationError):
        logger.warning("Rejected request body: %s", exc.errors())
        return _error(400, "Invalid request body", [e.get("msg") for e in exc.errors()])

    @app.exception_handler(ValidationError)
    async def on_validation(_request: Request, exc: ValidationError):
        logger.warning("%s", exc)
        return _error(400, str(exc))

    @app.exception_handler(ConfigurationError)
    async def on_configuration(_request: Request, exc: ConfigurationError):
        logger.error("Configuration error: %s", exc)
        return _error(500, GENERATE_ERROR, str(exc))

    @app.exception_handler(UpstreamError)
    async def on_upstream(_request: Request, exc: UpstreamError):
        logger.error("Upstream error (status=%s, transient=%s): %s", exc.status, exc.transient, exc)
        return _error(502, GENERATE_ERROR, str(exc))

    @app.exception_handler(Exception)
    async def on_unexpected(_request: Request, exc: Exception):
        logger.error("CRITICAL ERROR while handling request", exc_info=exc)
        return _error(500, GENERATE_ERROR, str(exc))

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        return HTMLResponse(index_path.read_text(encoding="utf-8"))

    @app.get("/api/config")
    def api_config():
        return JSONResponse(
            {
                "provider": provider_name,
                "model": app.state.model_name,
                "rates": {
                    "input_cost_per_million": rates.input_per_million,
                    "output_cost_per_million": rates.output_per_million,
                },
            }
        )

    @app.post("/api/generate-cards")
    def generate_cards(req: GenerationRequest):
        logger.info("Received request to /api/generate-cards")
        logger.debug("Request Body: %s", req.model_dump_json(indent=2))
        topic = req.require_topic()
        context = req.prior_concepts
        logger.info("Request body topic: %s", topic)
        if context:
            logger.info("Context provided with %d existing cards.", len(context))

        logger.info("Selected AI Provider: %s", provider_name)
        adapter = build_provider(cfg, resolver)
        fragments, usage = adapter.open_stream(topic, context)

        started = time.monotonic()
        logger.info("Stream started")
        fragments = iter(fragments)
        # Pull the first fragment before headers go out, so an upstream
        # failure here still becomes a proper error response.
        first = next(fragments, None)
        if first is not None:
            logger.info("[PERF] First content chunk received at +%dms", (time.monotonic() - started) * 1000)
            fragments = itertools.chain([first], fragments)

        body = _relay(fragments, usage, provider_name=provider_name, rates=rates, started=started)
        return StreamingResponse(body, media_type="text/plain; charset=utf-8")

    return app


def _port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        # uvicorn binds with SO_REUSEADDR; TIME_WAIT leftovers must not count as busy
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            return e.errno == errno.EADDRINUSE
    return False


def run(
    *,
    config: Optional[Path] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> None:
    import uvicorn

    app = create_app(config, provider=provider, model=model)
    server_cfg = app.state.cfg["server"]
    host = host or server_cfg["host"]
    port = int(port or server_cfg["port"])

    if _port_in_use(host, port):
        logger.error("ERROR: Port %d is already in use!", port)
        logger.error("Please kill the process running on port %d or check your .env file.", port)
        raise SystemExit(1)

    logger.info("Server running at http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
