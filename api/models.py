"""
Pydantic response models for the JSON API.

Records are passed through as plain key/value objects because their keys
are whatever headers ``reg_list.json`` carries; everything else is typed.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# ── Table ─────────────────────────────────────────────────────────────────────

class ColumnOut(BaseModel):
    """One column descriptor of the records table."""
    id: str = Field(..., description="Column id", examples=["法令名"])
    header: str = Field(..., description="Display label", examples=["法令名"])
    accessor: str | None = Field(None, description="Record key read by the column; null for display columns")
    cell: str = Field(..., description="Cell render strategy: text | clause_link | schedule", examples=["text"])
    width: str = Field("", description="Relative column width", examples=["10%"])
    sortable: bool = Field(..., description="Whether the column can be sorted")
    filterable: bool = Field(..., description="Whether the column can be filtered")


class SortOut(BaseModel):
    column: str = Field(..., description="Sorted column id")
    direction: str = Field(..., description="asc | desc", examples=["asc"])


class RecordOut(BaseModel):
    """One record with its position and generated clause link."""
    index: int = Field(..., description="Position of the record in the loaded dataset", examples=[0])
    clause_link: str | None = Field(None, description="Viewer URL for the record's clause, if it has a law id")
    schedule_group: str | None = Field(None, description="Display name of the matched schedule group, if any")
    data: dict[str, Any] = Field(..., description="All record fields keyed by column header")


class RecordPage(BaseModel):
    """Response body for GET /api/v1/records."""
    total: int = Field(..., description="Rows in the dataset", examples=[4212])
    filtered: int = Field(..., description="Rows passing the filters", examples=[25])
    page: int = Field(..., description="1-based page number after clamping", examples=[1])
    page_size: int = Field(..., description="Rows per page", examples=[10])
    page_count: int = Field(..., description="Number of pages for the filtered rows", examples=[3])
    site: str = Field(..., description="Clause link site used for clause_link", examples=["Lawtext"])
    filters: dict[str, str] = Field(default_factory=dict, description="Active column filters")
    sorting: list[SortOut] = Field(default_factory=list, description="Active sort, most significant first")
    items: list[RecordOut] = Field(..., description="Records on this page")


class FacetOut(BaseModel):
    """Distinct values of one column under the other filters."""
    column: str = Field(..., description="Column id", examples=["所管省庁名"])
    distinct: int = Field(..., description="Number of distinct values", examples=[18])
    truncated: bool = Field(..., description="Whether values was cut at the suggestion limit")
    values: list[str] = Field(..., description="Sorted distinct values, at most the suggestion limit")


# ── Schedule ──────────────────────────────────────────────────────────────────

class ScheduleHeadOut(BaseModel):
    column: int = Field(..., examples=[3])
    year: str = Field(..., examples=["2023"])
    month: str = Field(..., examples=["4月"])


class ScheduleItemOut(BaseModel):
    name: str = Field(..., examples=["点検"])
    start_column: int = Field(..., examples=[4])
    end_column: int = Field(..., description="Exclusive end column", examples=[6])


class ScheduleGroupOut(BaseModel):
    key: str = Field(..., description="Normalized lookup key", examples=["年次計画"])
    name: str = Field(..., description="Original group name", examples=["年次計画※括弧内は目安"])
    items: list[ScheduleItemOut]


class GridCellOut(BaseModel):
    kind: str = Field(..., description="year | month | separator | item")
    text: str
    row_start: int
    row_end: int
    column_start: int
    column_end: int


class ScheduleLayoutOut(BaseModel):
    """Timeline grid for one schedule group (1-indexed grid lines)."""
    group: str = Field(..., description="Original group name")
    tracks: int = Field(..., description="Number of equal-width columns", examples=[3])
    offset: int = Field(..., description="Smallest head column", examples=[3])
    grid_template_columns: str = Field(..., examples=["1fr 1fr 1fr"])
    cells: list[GridCellOut]


# ── Meta ──────────────────────────────────────────────────────────────────────

class HealthOut(BaseModel):
    status: str = Field(..., description="loading | ready | failed", examples=["ready"])
    records: int | None = Field(None, description="Loaded record count")
    schedule_groups: int | None = Field(None, description="Loaded schedule group count")
    errors: list[str] = Field(default_factory=list, description="Load failures")


class ErrorResponse(BaseModel):
    """Standard error response body."""
    error: str = Field(..., description="Short error category", examples=["Bad request"])
    detail: str | None = Field(None, description="Extended error detail")
    status_code: int = Field(..., ge=400, le=599, description="HTTP status code", examples=[400])
