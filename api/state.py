"""
View state for the API: the loaded datasets and their load lifecycle.

One ``ViewState`` lives on ``app.state.view``.  It starts empty, and the
lifespan hook runs ``ViewState.load()``, which fetches ``reg_list.json`` and
``sched.json`` concurrently.  Each document commits its own piece of state
when it resolves; the view is ``ready`` only once both have.

A ``LoadToken`` ties the load to the application lifetime: shutdown cancels
the token, and a fetch that resolves afterwards is dropped instead of being
written into a torn-down state.

Routes get the state through ``get_view()`` / ``get_ready_view()``; the
latter answers 503 while loading or after a failed load.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Callable

from fastapi import HTTPException, Request

from utils.cache import TTLCache
from utils.config import RECORDS_DATASET, SCHEDULE_DATASET
from utils.datasets import DatasetError, DatasetSource
from utils.links import ClauseLinkSite
from utils.records import Record, count_mixed_clause_shapes, load_records
from utils.schedule import ScheduleModel, load_schedule
from utils.table import COLUMNS, SortSpec, TableController, TableState

logger = logging.getLogger(__name__)

STATUS_LOADING = "loading"
STATUS_READY = "ready"
STATUS_FAILED = "failed"


class LoadToken:
    """Cancellation flag shared between the load task and the app lifespan."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ViewState:
    """Single owner of the loaded records, schedule model and load errors."""

    def __init__(self, default_page_size: int = 10,
                 default_site: ClauseLinkSite = ClauseLinkSite.LAWTEXT) -> None:
        self.records: list[Record] | None = None
        self.schedule: ScheduleModel | None = None
        self.errors: list[DatasetError] = []
        self.default_page_size = default_page_size
        self.default_site = default_site
        self.facet_cache = TTLCache(maxsize=512, ttl_seconds=3600)
        self.loaded_at: float | None = None

    @property
    def status(self) -> str:
        if self.errors:
            return STATUS_FAILED
        if self.records is not None and self.schedule is not None:
            return STATUS_READY
        return STATUS_LOADING

    @property
    def ready(self) -> bool:
        return self.status == STATUS_READY

    # ── Loading ───────────────────────────────────────────────────────────

    async def _load_one(self, source: DatasetSource, name: str,
                        build: Callable[[Any, str], Any],
                        commit: Callable[[Any], None],
                        token: LoadToken) -> None:
        url = source.url_for(name)
        start = time.monotonic()
        try:
            raw = await asyncio.to_thread(source.fetch_json, name)
            value = await asyncio.to_thread(build, raw, url)
        except DatasetError as exc:
            if token.cancelled:
                return
            logger.error("dataset_load_failed url=%s error=%s", url, exc)
            self.errors.append(exc)
            return
        if token.cancelled:
            logger.info("dataset_load_discarded url=%s (cancelled)", url)
            return
        commit(value)
        logger.info(
            "dataset_loaded url=%s elapsed_ms=%.1f",
            url, (time.monotonic() - start) * 1000,
        )

    def _commit_records(self, records: list[Record]) -> None:
        self.records = records
        self.facet_cache.clear()
        mixed = count_mixed_clause_shapes(records)
        if mixed:
            logger.warning(
                "records_mixed_clause_shapes count=%d "
                "(links follow sp > AppdxTable > article/paragraph/item)", mixed,
            )
        logger.info("records_loaded rows=%d", len(records))

    def _commit_schedule(self, schedule: ScheduleModel) -> None:
        self.schedule = schedule
        logger.info(
            "schedule_loaded head=%d groups=%d", len(schedule.head), len(schedule.groups),
        )

    async def load(self, source: DatasetSource, token: LoadToken | None = None) -> None:
        """Fetch and build both datasets concurrently.

        Failures are recorded in ``errors`` and logged, not raised; nothing
        is retried.
        """
        token = token or LoadToken()
        await asyncio.gather(
            self._load_one(source, RECORDS_DATASET, load_records,
                           self._commit_records, token),
            self._load_one(source, SCHEDULE_DATASET, load_schedule,
                           self._commit_schedule, token),
        )
        if self.ready:
            self.loaded_at = time.time()

    # ── Table state ───────────────────────────────────────────────────────

    def table(self, state: TableState) -> TableController:
        if self.records is None:
            raise RuntimeError("records are not loaded")
        return TableController(self.records, state, COLUMNS, facet_cache=self.facet_cache)


# ── Query-string <-> TableState ───────────────────────────────────────────────

FILTER_PREFIX = "f."


def _int_param(params, name: str, default: int) -> int:
    raw = params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def table_state_from_params(params, view: ViewState) -> TableState:
    """Build a ``TableState`` from query parameters.

    Recognised parameters:
        f.<column>   filter value for a column
        sort         repeatable; ``<column>`` ascending, ``-<column>`` descending
        page         1-based page number
        size         page size
        shown_size   page size the ``page`` number was computed with
        site         clause link site

    Raises:
        ValueError: A parameter has an unusable value.
    """
    state = TableState(page_size=view.default_page_size, clause_link_site=view.default_site)
    for key, value in params.multi_items():
        if key.startswith(FILTER_PREFIX) and value:
            state.filters[key[len(FILTER_PREFIX):]] = value
    state.sorting = [SortSpec.from_param(s) for s in params.getlist("sort") if s]
    size = _int_param(params, "size", view.default_page_size)
    # The page number refers to the size the user was looking at; a size
    # change then keeps the first visible row on screen.
    shown_size = _int_param(params, "shown_size", size)
    if shown_size != state.page_size:
        state.set_page_size(shown_size)
    state.page_index = _int_param(params, "page", 1) - 1
    if size != shown_size:
        state.set_page_size(size)
    if params.get("site"):
        state.set_clause_link_site(params.get("site"))
    return state


def table_state_to_params(state: TableState) -> list[tuple[str, str]]:
    """Inverse of ``table_state_from_params`` (as ordered pairs for urlencode)."""
    pairs: list[tuple[str, str]] = [
        (f"{FILTER_PREFIX}{column}", value) for column, value in state.filters.items()
    ]
    pairs += [("sort", spec.to_param()) for spec in state.sorting]
    pairs += [
        ("page", str(state.page_index + 1)),
        ("size", str(state.page_size)),
        ("site", state.clause_link_site.value),
    ]
    return pairs


# ── FastAPI dependencies ──────────────────────────────────────────────────────

def get_view(request: Request) -> ViewState:
    """FastAPI dependency: the application's ``ViewState``."""
    return request.app.state.view


def get_ready_view(request: Request) -> ViewState:
    """FastAPI dependency: the ``ViewState``, or 503 until both datasets loaded."""
    view: ViewState = request.app.state.view
    if view.status == STATUS_FAILED:
        raise HTTPException(
            status_code=503,
            detail="; ".join(str(e) for e in view.errors),
        )
    if not view.ready:
        raise HTTPException(status_code=503, detail="datasets are still loading")
    return view
