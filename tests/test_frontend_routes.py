"""
End-to-end frontend route tests (tests/test_frontend_routes.py)

Tests for the Jinja2 frontend routes served by api/routes/frontend.py:
    GET /                       table page (or loading placeholder)
    GET /partials/table         HTMX swap target (filters, sort, pager)
    GET /partials/schedule      HTMX swap target (schedule modal)

Uses the app_client fixture from conftest.py for the sample data and a
25-row view for the pagination tests.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fastapi.testclient import TestClient

from conftest import make_config
from api.app import create_app
from api.state import ViewState
from utils.datasets import DatasetLoadError
from utils.links import EGOV_BASE_URL, LAWTEXT_BASE_URL
from utils.schedule import ScheduleModel

HTML = {"Accept": "text/html"}


@pytest.fixture()
def paged_client(data_dir):
    view = ViewState()
    view.records = [
        {"分類": "A", "No": str(i + 1), "法令名": f"法令{i + 1}", "工程表": ""}
        for i in range(25)
    ]
    view.schedule = ScheduleModel()
    app = create_app(config=make_config(data_dir), view=view)
    return TestClient(app, raise_server_exceptions=False)


class TestIndex:
    def test_renders_table(self, app_client):
        resp = app_client.get("/", headers=HTML)
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        html = resp.text
        assert 'id="reg-table"' in html
        assert 'id="index-modal"' in html
        assert 'name="f.法令名"' in html
        assert "電気事業法施行規則" in html
        assert '<span id="filtered-count">4</span>' in html

    def test_clause_links(self, app_client):
        html = app_client.get("/").text
        assert LAWTEXT_BASE_URL + "407M50000400052/a=94/p=1/i=2" in html
        assert 'target="_blank" rel="noreferrer">条文</a>' in html

    def test_schedule_buttons_only_for_known_groups(self, app_client):
        html = app_client.get("/").text
        assert html.count('hx-get="/partials/schedule"') == 2
        assert "存在しない工程表" in html

    def test_facet_suggestions(self, app_client):
        html = app_client.get("/").text
        assert '<option value="経済産業省"></option>' in html
        assert 'placeholder="検索 (2)"' in html

    def test_query_state(self, app_client):
        html = app_client.get("/", params={"site": "e-Gov", "sort": "-No"}).text
        assert EGOV_BASE_URL + "326AC0000000204#326AC0000000204-Sp" in html
        assert '<option value="e-Gov" selected>' in html
        assert '<input type="hidden" name="sort" value="-No">' in html
        assert "No↓" in html


class TestTablePartial:
    def test_filter(self, app_client):
        resp = app_client.get("/partials/table", params={"f.所管省庁名": "厚生"})
        assert resp.status_code == 200
        assert '<span id="filtered-count">2</span>' in resp.text
        assert '<span id="total-count">4</span>' in resp.text
        assert "<html" not in resp.text

    def test_push_url(self, app_client):
        resp = app_client.get("/partials/table", params={"size": 50})
        assert resp.headers["HX-Push-Url"] == "/?page=1&size=50&site=Lawtext"

    def test_toggle_sort(self, app_client):
        html = app_client.get("/partials/table", params={"toggle": "No"}).text
        assert '<input type="hidden" name="sort" value="No">' in html
        assert "No↑" in html

    def test_toggle_cycles_off(self, app_client):
        html = app_client.get("/partials/table", params={"sort": "-No", "toggle": "No"}).text
        assert 'name="sort"' not in html

    def test_shift_toggle_extends_sort(self, app_client):
        html = app_client.get(
            "/partials/table", params={"sort": "No", "toggle": "分類", "multi": "1"},
        ).text
        assert '<input type="hidden" name="sort" value="No">' in html
        assert '<input type="hidden" name="sort" value="分類">' in html

    def test_toggle_display_column(self, app_client):
        resp = app_client.get("/partials/table", params={"toggle": "clause_link"})
        assert resp.status_code == 400

    def test_bad_page_size(self, app_client):
        assert app_client.get("/partials/table", params={"size": 7}).status_code == 400


class TestPaging:
    def test_page_count(self, paged_client):
        html = paged_client.get("/").text
        assert '<span id="page-count">3</span>' in html
        assert 'name="page" value="1"' in html

    def test_nav(self, paged_client):
        html = paged_client.get("/partials/table", params={"page": 1, "nav": "next"}).text
        assert 'name="page" value="2"' in html
        html = paged_client.get("/partials/table", params={"page": 2, "nav": "last"}).text
        assert 'name="page" value="3"' in html
        assert "法令25" in html

    def test_page_out_of_range(self, paged_client):
        html = paged_client.get("/partials/table", params={"page": 40}).text
        assert 'name="page" value="3"' in html

    def test_unchanged_filters_keep_page(self, paged_client):
        html = paged_client.get("/partials/table", params={"page": 2, "filter_sig": "[]"}).text
        assert 'name="page" value="2"' in html

    def test_changed_filters_reset_page(self, paged_client):
        html = paged_client.get(
            "/partials/table", params={"page": 2, "filter_sig": "[]", "f.法令名": "法令1"},
        ).text
        assert 'name="page" value="1"' in html
        assert '<span id="filtered-count">11</span>' in html

    def test_page_size_keeps_first_row(self, paged_client):
        html = paged_client.get(
            "/partials/table", params={"page": 3, "shown_size": 10, "size": 50},
        ).text
        assert 'name="page" value="1"' in html
        assert '<option value="50" selected>' in html


class TestSchedulePartial:
    def test_layout(self, app_client):
        resp = app_client.get("/partials/schedule", params={"group": "年次計画"})
        assert resp.status_code == 200
        assert resp.headers["HX-Trigger-After-Swap"] == "show-modal"
        html = resp.text
        assert "工程表「年次計画」" in html
        assert "技術検証" in html
        assert "grid-template-columns: 1fr 1fr 1fr" in html
        assert "grid-row: 4 / 5; grid-column: 1 / 2;" in html

    def test_unknown_group(self, app_client):
        # 200 so HTMX swaps the body and the show-modal trigger fires
        resp = app_client.get("/partials/schedule", params={"group": "未登録"})
        assert resp.status_code == 200
        assert resp.headers["HX-Trigger-After-Swap"] == "show-modal"
        assert "工程表「未登録」" in resp.text
        assert "工程表がありません。" in resp.text


class TestLoadingPage:
    def _failed_client(self, data_dir):
        view = ViewState()
        view.errors.append(DatasetLoadError("/data/sched.json", status=404))
        return TestClient(create_app(config=make_config(data_dir), view=view))

    def test_loading(self, data_dir):
        client = TestClient(create_app(config=make_config(data_dir), view=ViewState()))
        resp = client.get("/")
        assert resp.status_code == 200
        assert "loading..." in resp.text
        assert 'http-equiv="refresh"' in resp.text

    def test_loading_partial_is_fragment(self, data_dir):
        client = TestClient(create_app(config=make_config(data_dir), view=ViewState()))
        resp = client.get("/partials/table")
        assert resp.status_code == 200
        assert "loading..." in resp.text
        assert 'hx-get="/partials/table"' in resp.text
        assert 'hx-trigger="load delay:2s"' in resp.text
        assert "<html" not in resp.text
        assert 'http-equiv="refresh"' not in resp.text
        assert resp.text.count('id="index-modal"') == 0

    def test_loading_schedule_opens_modal(self, data_dir):
        client = TestClient(create_app(config=make_config(data_dir), view=ViewState()))
        resp = client.get("/partials/schedule", params={"group": "年次計画"})
        assert resp.status_code == 200
        assert resp.headers["HX-Trigger-After-Swap"] == "show-modal"
        assert "loading..." in resp.text
        assert "<html" not in resp.text

    def test_failed_page(self, data_dir):
        resp = self._failed_client(data_dir).get("/")
        assert resp.status_code == 503
        assert "/data/sched.json" in resp.text
        assert 'http-equiv="refresh"' not in resp.text

    def test_failed_partial_is_swappable_fragment(self, data_dir):
        resp = self._failed_client(data_dir).get("/partials/table")
        assert resp.status_code == 200
        assert "データの読み込みに失敗しました。" in resp.text
        assert "/data/sched.json" in resp.text
        assert "<html" not in resp.text
        assert "hx-trigger" not in resp.text


class TestErrorPages:
    def test_html_404(self, app_client):
        resp = app_client.get("/no-such-page", headers=HTML)
        assert resp.status_code == 404
        assert "text/html" in resp.headers["content-type"]
        assert "一覧へ戻る" in resp.text

    def test_api_404_stays_json(self, app_client):
        resp = app_client.get("/api/v1/records/99", headers=HTML)
        assert resp.status_code == 404
        assert resp.json()["error"] == "Not found"
