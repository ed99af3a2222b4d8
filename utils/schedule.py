"""Schedule ("roadmap") model loader and timeline layout.

``sched.json`` has two parts::

    {"head":  [[3, "2022", "4月"], [4, "", "5月"], ...],
     "items": [["年次計画※括弧内は目安", [["点検", 4, 6], ...]], ...]}

``head`` maps timeline columns to year/month labels; ``items`` lists the
named groups of bars.  Groups are indexed by a normalized key (the name cut
at the first ``※`` and trimmed) because records refer to them through their
own, differently formatted, ``工程表`` field.

``layout_schedule`` turns one group into 1-indexed CSS-grid placements:

    row 1       year labels      column  head.column - offset + 1
    row 2       month labels     column  head.column - offset + 1
    row 3       separator        columns 1 .. tracks + 1
    row 4 + n   item n           columns start - offset + 1 .. end - offset + 1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from utils.datasets import MalformedDatasetError

NOTE_MARKER = "※"


class RawScheduleDocument(BaseModel):
    """Schema of ``sched.json``."""
    head: list[tuple[int, str | int, str | int]]
    items: list[tuple[str, list[tuple[str, int, int]]]]


@dataclass(frozen=True)
class ScheduleHeadEntry:
    column: int
    year: str
    month: str


@dataclass(frozen=True)
class ScheduleItem:
    name: str
    start_column: int
    end_column: int  # exclusive


@dataclass
class ScheduleGroup:
    name: str  # original display name, note marker included
    items: list[ScheduleItem] = field(default_factory=list)


@dataclass
class ScheduleModel:
    """Head entries plus groups keyed by normalized name."""

    head: list[ScheduleHeadEntry] = field(default_factory=list)
    groups: dict[str, ScheduleGroup] = field(default_factory=dict)

    @property
    def offset(self) -> int:
        """Smallest head column; 0 for an empty head."""
        return min((h.column for h in self.head), default=0)

    def group_for(self, raw_name: Any) -> ScheduleGroup | None:
        """Look up the group a record's schedule field refers to.

        Empty, missing and unknown names all return None.
        """
        if not raw_name:
            return None
        key = normalize_group_name(str(raw_name))
        if not key:
            return None
        return self.groups.get(key)


def normalize_group_name(name: str) -> str:
    """Drop everything from the first note marker on, then trim."""
    return name.split(NOTE_MARKER, 1)[0].strip()


def load_schedule(raw_doc: Any, url: str = "sched.json") -> ScheduleModel:
    """Build the schedule model from the raw document.

    Raises:
        MalformedDatasetError: The document does not match the schema.
    """
    try:
        doc = RawScheduleDocument.model_validate(raw_doc)
    except ValidationError as exc:
        raise MalformedDatasetError(url, str(exc)) from exc

    head = [
        ScheduleHeadEntry(column=column, year=str(year), month=str(month))
        for column, year, month in doc.head
    ]
    groups: dict[str, ScheduleGroup] = {}
    for group_name, raw_items in doc.items:
        items = [
            ScheduleItem(name=name, start_column=start, end_column=end)
            for name, start, end in raw_items
        ]
        groups[normalize_group_name(group_name)] = ScheduleGroup(name=group_name, items=items)
    return ScheduleModel(head=head, groups=groups)


# ── Layout ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GridCell:
    """One placed element of the timeline grid (1-indexed grid lines)."""

    kind: str  # year | month | separator | item
    text: str
    row_start: int
    row_end: int
    column_start: int
    column_end: int

    @property
    def style(self) -> str:
        return (
            f"grid-row: {self.row_start} / {self.row_end}; "
            f"grid-column: {self.column_start} / {self.column_end};"
        )


@dataclass
class ScheduleLayout:
    group_name: str
    tracks: int
    offset: int
    cells: list[GridCell] = field(default_factory=list)

    @property
    def grid_template_columns(self) -> str:
        return " ".join(["1fr"] * self.tracks)

    def cells_of(self, kind: str) -> list[GridCell]:
        return [c for c in self.cells if c.kind == kind]


def layout_schedule(model: ScheduleModel, group: ScheduleGroup) -> ScheduleLayout:
    """Place the head labels and the bars of ``group`` on the timeline grid."""
    offset = model.offset
    tracks = len(model.head)
    cells: list[GridCell] = []

    for entry in model.head:
        column = entry.column - offset + 1
        cells.append(GridCell("year", entry.year, 1, 2, column, column + 1))
    for entry in model.head:
        column = entry.column - offset + 1
        cells.append(GridCell("month", entry.month, 2, 3, column, column + 1))

    cells.append(GridCell("separator", "", 3, 4, 1, tracks + 1))

    for n, item in enumerate(group.items):
        cells.append(GridCell(
            "item", item.name, 4 + n, 5 + n,
            item.start_column - offset + 1, item.end_column - offset + 1,
        ))

    return ScheduleLayout(group_name=group.name, tracks=tracks, offset=offset, cells=cells)
