"""
Pytest fixtures for the regulatory review explorer tests.

Provides small ``reg_list.json`` / ``sched.json`` documents, a data directory
holding them, a ``ViewState`` already loaded from that directory, and a
``TestClient`` for an app built around the loaded view (so the start-up load
is skipped).
"""

import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fastapi.testclient import TestClient

from api.app import create_app
from api.state import ViewState
from utils.config import AppConfig
from utils.datasets import DatasetSource

RAW_COLUMNS = [
    "分類", "No.", "法令名", "LawId", "条項", "sp", "a", "p", "i", "AppdxTable",
    "所管省庁名", "規制等の内容概要", "規制等の類型", "現在Phase", "見直後Phase",
    "見直し要否", "見直し完了時期", "工程表", "見直しの概要",
]


def make_row(**fields) -> list:
    """One ``reg_list.json`` data row; unspecified fields are empty strings."""
    if "No" in fields:
        fields["No."] = fields.pop("No")
    return [fields.get(c, "") for c in RAW_COLUMNS]


SAMPLE_ROWS = [
    make_row(分類="目視規制", No="1", 法令名="電気事業法施行規則", LawId="407M50000400052",
             条項="第94条第1項第2号", a="94", p="1", i="2", 所管省庁名="経済産業省",
             工程表="年次計画"),
    make_row(分類="定期検査・点検規制", No="2", 法令名="高圧ガス保安法", LawId="326AC0000000204",
             条項="附則", sp="1", 所管省庁名="経済産業省", 工程表="一括見直し※注記"),
    make_row(分類="書面掲示規制", No="10", 法令名="旅館業法施行規則", LawId="323M40000100028",
             条項="別表第一", AppdxTable="1", 所管省庁名="厚生労働省"),
    make_row(分類="実地監査規制", No="3", 法令名="介護保険法", 条項="第24条",
             所管省庁名="厚生労働省", 工程表="存在しない工程表"),
]

SAMPLE_SCHED = {
    "head": [[3, "2022", "4月"], [4, "", "10月"], [5, "2023", "4月"]],
    "items": [
        ["年次計画※括弧内は目安", [["技術検証", 3, 4], ["規制見直し", 4, 6]]],
        ["一括見直し", [["法改正", 3, 5]]],
    ],
}


@pytest.fixture()
def sample_reg_list() -> dict:
    return {"columns": list(RAW_COLUMNS), "data": [list(r) for r in SAMPLE_ROWS]}


@pytest.fixture()
def sample_sched() -> dict:
    return json.loads(json.dumps(SAMPLE_SCHED))


def write_datasets(directory: Path, reg_list=None, sched=None) -> Path:
    """Write the two documents into ``directory`` (``None`` skips one)."""
    directory.mkdir(parents=True, exist_ok=True)
    if reg_list is not None:
        (directory / "reg_list.json").write_text(
            json.dumps(reg_list, ensure_ascii=False), encoding="utf-8")
    if sched is not None:
        (directory / "sched.json").write_text(
            json.dumps(sched, ensure_ascii=False), encoding="utf-8")
    return directory


@pytest.fixture()
def data_dir(tmp_path, sample_reg_list, sample_sched) -> Path:
    return write_datasets(tmp_path / "data", sample_reg_list, sample_sched)


def make_config(data_dir: Path, **overrides) -> AppConfig:
    """An ``AppConfig`` pointed at ``data_dir`` with attribute overrides."""
    cfg = AppConfig()
    cfg.data_dir = data_dir
    cfg.data_url = ""
    cfg.base_path = ""
    cfg.log_format = "text"
    cfg.clause_link_site = "Lawtext"
    cfg.page_size = 10
    for key, value in overrides.items():
        setattr(cfg, key, value)
    return cfg


def load_view(data_dir: Path) -> ViewState:
    view = ViewState()
    asyncio.run(view.load(DatasetSource(data_dir=data_dir)))
    return view


@pytest.fixture()
def loaded_view(data_dir) -> ViewState:
    view = load_view(data_dir)
    assert view.ready, view.errors
    return view


@pytest.fixture()
def app_client(data_dir, loaded_view):
    """TestClient for an app serving the pre-loaded sample view."""
    app = create_app(config=make_config(data_dir), view=loaded_view)
    return TestClient(app, raise_server_exceptions=False)
