"""
Tests for api/state.py: ViewState loading and the query-string table state.
"""
import asyncio
import logging
import sys
import threading
from pathlib import Path

import pytest
from starlette.datastructures import QueryParams

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import write_datasets
from api.state import (
    STATUS_FAILED,
    STATUS_LOADING,
    STATUS_READY,
    LoadToken,
    ViewState,
    table_state_from_params,
    table_state_to_params,
)
from utils.datasets import DatasetLoadError, DatasetSource
from utils.links import ClauseLinkSite
from utils.table import SortSpec


class _FakeSource:
    """In-memory stand-in for DatasetSource with an optional fetch hook."""

    def __init__(self, documents, before_fetch=None):
        self.documents = documents
        self.before_fetch = before_fetch

    def url_for(self, name):
        return f"/data/{name}.json"

    def fetch_json(self, name):
        if self.before_fetch is not None:
            self.before_fetch(name)
        if name not in self.documents:
            raise DatasetLoadError(self.url_for(name), status=404)
        return self.documents[name]


class TestLoad:
    def test_initial_status(self):
        view = ViewState()
        assert view.status == STATUS_LOADING
        assert not view.ready

    def test_loads_both(self, data_dir):
        view = ViewState()
        asyncio.run(view.load(DatasetSource(data_dir=data_dir)))
        assert view.status == STATUS_READY
        assert len(view.records) == 4
        assert "年次計画" in view.schedule.groups
        assert view.loaded_at is not None

    def test_fetches_concurrently(self, sample_reg_list, sample_sched):
        # Both fetches must be in flight at once to pass the barrier.
        barrier = threading.Barrier(2, timeout=5)
        source = _FakeSource(
            {"reg_list": sample_reg_list, "sched": sample_sched},
            before_fetch=lambda name: barrier.wait(),
        )
        view = ViewState()
        asyncio.run(view.load(source))
        assert view.ready

    def test_missing_document_fails(self, tmp_path, sample_reg_list, caplog):
        data = write_datasets(tmp_path / "data", reg_list=sample_reg_list)
        view = ViewState()
        with caplog.at_level(logging.ERROR, logger="api.state"):
            asyncio.run(view.load(DatasetSource(data_dir=data)))
        assert view.status == STATUS_FAILED
        assert view.records is not None
        assert view.schedule is None
        (error,) = view.errors
        assert isinstance(error, DatasetLoadError)
        assert "sched.json" in str(error)
        assert "dataset_load_failed" in caplog.text

    def test_malformed_document_fails(self, tmp_path, sample_sched):
        data = write_datasets(
            tmp_path / "data", reg_list={"columns": ["a"], "data": [["1", "2"]]}, sched=sample_sched,
        )
        view = ViewState()
        asyncio.run(view.load(DatasetSource(data_dir=data)))
        assert view.status == STATUS_FAILED
        assert view.records is None
        assert view.schedule is not None

    def test_cancelled_load_is_discarded(self, sample_reg_list, sample_sched):
        token = LoadToken()
        source = _FakeSource(
            {"reg_list": sample_reg_list, "sched": sample_sched},
            before_fetch=lambda name: token.cancel(),
        )
        view = ViewState()
        asyncio.run(view.load(source, token))
        assert view.records is None
        assert view.schedule is None
        assert view.errors == []
        assert view.status == STATUS_LOADING

    def test_cancelled_failure_not_recorded(self):
        token = LoadToken()
        token.cancel()
        view = ViewState()
        asyncio.run(view.load(_FakeSource({}), token))
        assert view.errors == []

    def test_mixed_clause_shapes_warned(self, sample_sched, caplog):
        reg_list = {"columns": ["LawId", "sp", "a"], "data": [["X", "1", "2"], ["Y", "", "3"]]}
        view = ViewState()
        with caplog.at_level(logging.WARNING, logger="api.state"):
            asyncio.run(view.load(_FakeSource({"reg_list": reg_list, "sched": sample_sched})))
        assert view.ready
        assert "records_mixed_clause_shapes count=1" in caplog.text

    def test_table_requires_records(self):
        with pytest.raises(RuntimeError):
            ViewState().table(table_state_from_params(QueryParams(""), ViewState()))


class TestParams:
    def _view(self):
        return ViewState(default_page_size=10, default_site=ClauseLinkSite.LAWTEXT)

    def test_defaults(self):
        state = table_state_from_params(QueryParams(""), self._view())
        assert state.filters == {}
        assert state.sorting == []
        assert state.page_index == 0
        assert state.page_size == 10
        assert state.clause_link_site is ClauseLinkSite.LAWTEXT

    def test_view_defaults(self):
        view = ViewState(default_page_size=50, default_site=ClauseLinkSite.EGOV)
        state = table_state_from_params(QueryParams(""), view)
        assert state.page_size == 50
        assert state.clause_link_site is ClauseLinkSite.EGOV

    def test_parses_everything(self):
        params = QueryParams(
            "f.法令名=電波&f.分類=&sort=No&sort=-分類&page=3&size=50&site=e-Gov"
        )
        state = table_state_from_params(params, self._view())
        assert state.filters == {"法令名": "電波"}
        assert state.sorting == [SortSpec("No"), SortSpec("分類", desc=True)]
        assert state.page_index == 2
        assert state.page_size == 50
        assert state.clause_link_site is ClauseLinkSite.EGOV

    def test_size_change_keeps_first_row(self):
        # page 6 of size 10 starts at row 50 -> page 2 of size 50
        params = QueryParams("page=6&shown_size=10&size=50")
        state = table_state_from_params(params, self._view())
        assert state.page_size == 50
        assert state.page_index == 1

    @pytest.mark.parametrize("query", ["page=x", "size=25", "size=abc", "site=egov"])
    def test_bad_values(self, query):
        with pytest.raises(ValueError):
            table_state_from_params(QueryParams(query), self._view())

    def test_to_params(self):
        params = QueryParams("f.法令名=電波&sort=-No&page=2&size=50&site=e-Gov")
        state = table_state_from_params(params, self._view())
        assert table_state_to_params(state) == [
            ("f.法令名", "電波"), ("sort", "-No"), ("page", "2"), ("size", "50"), ("site", "e-Gov"),
        ]
