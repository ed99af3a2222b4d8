"""Shared utilities for the regulatory review explorer.

Loaders and pure helpers that the web layer (``api``) builds on.  Nothing in
this package depends on FastAPI.
"""

from utils.datasets import (
    DatasetError,
    DatasetLoadError,
    DatasetSource,
    MalformedDatasetError,
)
from utils.links import ClauseLinkSite, build_clause_link, clause_shapes
from utils.records import load_records
from utils.schedule import (
    ScheduleGroup,
    ScheduleModel,
    layout_schedule,
    load_schedule,
    normalize_group_name,
)
from utils.table import COLUMNS, ColumnDef, SortSpec, TableController, TableState

__all__ = [
    "DatasetError",
    "DatasetLoadError",
    "DatasetSource",
    "MalformedDatasetError",
    "ClauseLinkSite",
    "build_clause_link",
    "clause_shapes",
    "load_records",
    "ScheduleGroup",
    "ScheduleModel",
    "layout_schedule",
    "load_schedule",
    "normalize_group_name",
    "COLUMNS",
    "ColumnDef",
    "SortSpec",
    "TableController",
    "TableState",
]
