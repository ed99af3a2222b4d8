"""
Frontend HTML routes.

Serves the Jinja2 templates for the records table and the schedule modal.

Routes:
    GET /                       → index.html (table page, or loading placeholder)
    GET /partials/table         → partials/table.html (HTMX swap target)
    GET /partials/schedule      → partials/modal.html (HTMX swap into the modal)

All table state travels in the query string (see ``api.state``), so any
view of the table can be bookmarked.  The partial responses set
``HX-Push-Url`` to the equivalent full-page URL.

HTMX-only parameters on /partials/table:
    toggle      column whose sort to advance (asc → desc → off)
    multi       "1" to add the toggled column to the sort (shift-click)
    nav         first | previous | next | last
    filter_sig  filter signature the page was rendered with; a mismatch
                means the filters changed and the view returns to page 1
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from markupsafe import Markup
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.state import (
    STATUS_FAILED,
    ViewState,
    get_view,
    table_state_from_params,
    table_state_to_params,
)
from utils.config import PAGE_SIZES
from utils.links import ClauseLinkSite
from utils.schedule import layout_schedule
from utils.table import COLUMNS, TableController

router = APIRouter(tags=["frontend"])

# Templates instance is set by create_app() after mounting.
_templates: Jinja2Templates | None = None

MODAL_ID = "index-modal"


def set_templates(t: Jinja2Templates) -> None:
    global _templates
    _templates = t


def _tmpl() -> Jinja2Templates:
    if _templates is None:
        raise RuntimeError("Templates not initialised; call set_templates() first")
    return _templates


def _base_path(request: Request) -> str:
    return request.app.state.config.base_path


# ── Modal host ────────────────────────────────────────────────────────────────

def show_modal(request: Request, title: str, body: str) -> HTMLResponse:
    """Fill the page's single modal with ``title`` and ``body`` and open it.

    The response replaces whatever the modal showed before; the
    ``show-modal`` event opens it (a no-op when already open).
    """
    response = _tmpl().TemplateResponse(
        request,
        "partials/modal.html",
        {"title": title, "body": Markup(body), "modal_id": MODAL_ID},
    )
    response.headers["HX-Trigger-After-Swap"] = "show-modal"
    return response


# ── Table ─────────────────────────────────────────────────────────────────────

def _apply_interaction(table: TableController, params) -> None:
    """Apply the HTMX-only parameters on top of the parsed state."""
    state = table.state
    rendered_sig = params.get("filter_sig")
    if rendered_sig is not None and rendered_sig != state.filter_signature():
        table.first_page()

    toggle = params.get("toggle")
    if toggle:
        if not table.column(toggle).sortable:
            raise ValueError(f"column {toggle!r} cannot be sorted")
        state.toggle_sort(toggle, multi=params.get("multi") in ("1", "true"))

    nav = params.get("nav")
    if nav:
        table.navigate(nav)


def _table_context(request: Request, view: ViewState) -> dict:
    params = request.query_params
    state = table_state_from_params(params, view)
    table = view.table(state)
    _apply_interaction(table, params)

    facets = {
        c.id: (table.facet_suggestions(c.id), table.facet_count(c.id))
        for c in COLUMNS if c.filterable
    }
    return {
        "table": table,
        "state": state,
        "columns": COLUMNS,
        "rows": table.page_rows(),
        "schedule": view.schedule,
        "facets": facets,
        "page_sizes": PAGE_SIZES,
        "sites": [s.value for s in ClauseLinkSite],
        "query": urlencode(table_state_to_params(state)),
        "base_path": _base_path(request),
        "debounce_ms": request.app.state.config.filter_debounce_ms,
        "modal_id": MODAL_ID,
    }


def _loading_context(request: Request, view: ViewState) -> dict:
    return {"errors": [str(e) for e in view.errors],
            "failed": view.status == STATUS_FAILED,
            "base_path": _base_path(request), "modal_id": MODAL_ID}


def _loading(request: Request, view: ViewState) -> HTMLResponse:
    """Full loading page; refreshes itself until the data is ready."""
    context = _loading_context(request, view)
    return _tmpl().TemplateResponse(
        request, "loading.html", context, status_code=503 if context["failed"] else 200,
    )


def _loading_partial(request: Request, view: ViewState) -> HTMLResponse:
    """Loading fragment for the table swap target.

    Answers 200 even on failure, since HTMX does not swap 4xx/5xx bodies.
    While loading, the fragment re-requests the table after a short delay.
    """
    context = _loading_context(request, view)
    context["retry_url"] = f"{context['base_path']}/partials/table"
    return _tmpl().TemplateResponse(request, "partials/loading.html", context)


# ── Routes ────────────────────────────────────────────────────────────────────

@router.get("/", response_class=HTMLResponse, include_in_schema=False)
def index(request: Request, view: ViewState = Depends(get_view)) -> HTMLResponse:
    """Main table page."""
    if not view.ready:
        return _loading(request, view)
    return _tmpl().TemplateResponse(request, "index.html", _table_context(request, view))


@router.get("/partials/table", response_class=HTMLResponse, include_in_schema=False)
def table_partial(request: Request, view: ViewState = Depends(get_view)) -> HTMLResponse:
    """HTMX partial: controls, table and pager for the current state."""
    if not view.ready:
        return _loading_partial(request, view)
    context = _table_context(request, view)
    response = _tmpl().TemplateResponse(request, "partials/table.html", context)
    response.headers["HX-Push-Url"] = f"{context['base_path']}/?{context['query']}"
    return response


@router.get("/partials/schedule", response_class=HTMLResponse, include_in_schema=False)
def schedule_partial(
    request: Request,
    group: str = Query("", description="Raw schedule-group value of a record"),
    view: ViewState = Depends(get_view),
) -> HTMLResponse:
    """HTMX partial: the timeline of one schedule group, shown in the modal."""
    if not view.ready:
        body = _tmpl().get_template("partials/loading.html").render(_loading_context(request, view))
        return show_modal(request, "工程表", body)
    title = f"工程表「{group}」"
    found = view.schedule.group_for(group)
    if found is None:
        return show_modal(request, title, "工程表がありません。")
    layout = layout_schedule(view.schedule, found)
    body = _tmpl().get_template("partials/schedule.html").render(layout=layout)
    return show_modal(request, title, body)


# ── Error pages ───────────────────────────────────────────────────────────────

def _wants_html(request: Request) -> bool:
    path = request.url.path
    if "/api/" in path or path.endswith("/health"):
        return False
    return "text/html" in request.headers.get("accept", "")


def register_error_handlers(app: FastAPI) -> None:
    """Render error.html for browser requests; JSON for everything else."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if _wants_html(request):
            return _tmpl().TemplateResponse(
                request,
                "error.html",
                {"status_code": exc.status_code, "detail": exc.detail,
                 "base_path": _base_path(request), "modal_id": MODAL_ID},
                status_code=exc.status_code,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": _ERROR_NAMES.get(exc.status_code, "Error"),
                     "detail": str(exc.detail), "status_code": exc.status_code},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "Validation error", "detail": str(exc.errors()),
                     "status_code": 422},
        )


_ERROR_NAMES = {
    400: "Bad request",
    404: "Not found",
    405: "Method not allowed",
    503: "Service unavailable",
}
