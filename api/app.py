"""
FastAPI application factory.

Usage:
    python -m api.app                              # Dev server on port 8000
    APP_DATA_DIR=/srv/scdar/data python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

Start-up loads reg_list.json and sched.json in a background task (see
api.state); the page shows a loading placeholder until both are in.

APP_LOG_FORMAT=json switches request/load logging to newline-delimited JSON.
APP_CORS_ORIGINS configures the CORS middleware.
"""

import asyncio
import contextlib
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from api.models import HealthOut
from api.routes import records, schedule
from api.routes import frontend as frontend_routes
from api.state import LoadToken, ViewState
from utils.config import AppConfig
from utils.datasets import DatasetSource
from utils.links import ClauseLinkSite
from utils.table import cell_text

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


_logger = logging.getLogger("regreview_api")


def configure_logging(cfg: AppConfig) -> None:
    handler = logging.StreamHandler()
    if cfg.log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    logging.basicConfig(handlers=[handler], level=cfg.log_level, force=True)


def _source_from_config(cfg: AppConfig) -> DatasetSource:
    return DatasetSource(
        data_dir=cfg.data_dir,
        base_url=cfg.data_url,
        base_path=cfg.base_path,
        timeout=cfg.fetch_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load both datasets in the background; cancel the load on shutdown."""
    view: ViewState = app.state.view
    token = LoadToken()
    task = None
    if not view.ready:
        source: DatasetSource = app.state.source

        def _report(t: asyncio.Task) -> None:
            if not t.cancelled() and t.exception() is not None:
                _logger.error("dataset_load_crashed", exc_info=t.exception())

        task = asyncio.create_task(view.load(source, token))
        task.add_done_callback(_report)
    yield
    token.cancel()
    if task is not None and not task.done():
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    app.state.source.close()


def create_app(config: AppConfig | None = None,
               view: ViewState | None = None,
               source: DatasetSource | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Override the environment configuration (useful for testing).
        view: Pre-loaded view state; when it is already ready the start-up
            load is skipped.
        source: Override the dataset source built from ``config``.

    Returns:
        Configured FastAPI application instance.
    """
    cfg = (config or AppConfig.from_env()).validate()
    configure_logging(cfg)
    _logger.info("app_config %s", json.dumps(cfg.to_dict(), ensure_ascii=False))

    app = FastAPI(
        title="Regulatory Review Explorer",
        summary="Browse, filter and sort the regulatory review list with per-row roadmaps.",
        description=(
            "## Regulatory Review Explorer API\n\n"
            "Read-only access to the regulatory review list (`reg_list.json`) "
            "and its roadmap schedule (`sched.json`).\n\n"
            "### Key concepts\n"
            "- **Record**: one row of the review list, keyed by its column headers.\n"
            "- **Clause link**: a deep link into the Lawtext or e-Gov law viewer "
            "built from the record's law id and clause location.\n"
            "- **Schedule group**: a named set of timeline bars referenced by a "
            "record's `工程表` field.\n\n"
            "Table endpoints share the page's query parameters: `f.<column>` "
            "filters, repeatable `sort` (`-` prefix for descending), `page`, "
            "`size` and `site`."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "records", "description": "Filtered, sorted, paginated records and facets."},
            {"name": "schedule", "description": "Roadmap head, groups and grid layouts."},
            {"name": "meta", "description": "Health check."},
        ],
    )
    app.state.config = cfg
    app.state.view = view or ViewState(
        default_page_size=cfg.page_size,
        default_site=ClauseLinkSite.parse(cfg.clause_link_site),
    )
    app.state.source = source or _source_from_config(cfg)

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging middleware ────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with its duration and tag it with a request id."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms, request_id,
            )
        if duration_ms > 500:
            _logger.warning(
                "slow_request method=%s path=%s duration_ms=%.1f",
                request.method, path, duration_ms,
            )
        return response

    # ── Security headers ──────────────────────────────────────────────────────

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        # Bootstrap and HTMX come from CDNs; templates carry inline scripts.
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' unpkg.com cdn.jsdelivr.net 'unsafe-inline'; "
            "style-src 'self' cdn.jsdelivr.net 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self';"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("unhandled_error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
                "status_code": 500,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"error": "Bad request", "detail": str(exc), "status_code": 400},
        )

    # ── Health check ──────────────────────────────────────────────────────────

    prefix = cfg.base_path

    @app.get(f"{prefix}/health", tags=["meta"], summary="Health check",
             response_model=HealthOut)
    def health(request: Request):
        """Report the dataset load status; 503 unless both datasets are loaded."""
        state: ViewState = request.app.state.view
        body = HealthOut(
            status=state.status,
            records=len(state.records) if state.records is not None else None,
            schedule_groups=len(state.schedule.groups) if state.schedule is not None else None,
            errors=[str(e) for e in state.errors],
        )
        return JSONResponse(
            status_code=200 if state.ready else 503,
            content=body.model_dump(),
        )

    # ── Register routers ──────────────────────────────────────────────────────

    app.include_router(records.router, prefix=f"{prefix}/api/v1")
    app.include_router(schedule.router, prefix=f"{prefix}/api/v1")

    # ── Static data + Jinja2 templates ────────────────────────────────────────
    _here = Path(__file__).parent.parent  # project root

    if not cfg.data_url and cfg.data_dir.is_dir():
        app.mount(f"{prefix}/data", StaticFiles(directory=str(cfg.data_dir)), name="data")

    templates = Jinja2Templates(directory=str(_here / "templates"))
    templates.env.filters["cell_text"] = cell_text
    frontend_routes.set_templates(templates)
    app.include_router(frontend_routes.router, prefix=prefix)
    frontend_routes.register_error_handlers(app)

    return app


if __name__ == "__main__":
    import uvicorn

    _cfg = AppConfig.from_env()
    uvicorn.run(
        "api.app:create_app",
        factory=True,
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
