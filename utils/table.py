"""Table controller: column descriptors, filters, sorting, pagination, facets.

``TableState`` is the mutable UI state of one table view (what the user has
typed, clicked and selected).  ``TableController`` pairs it with the loaded
records and derives everything the page shows: filtered/sorted rows, the
current page, counts and autocomplete suggestions.

Filtering is case-insensitive substring containment; sorting is stable and
"alphanumeric" (digit runs compare as numbers, text case-insensitively).
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from utils.cache import TTLCache
from utils.config import FACET_LIMIT, PAGE_SIZES
from utils.links import ClauseLinkSite, build_clause_link
from utils.records import Record


# ── Column descriptors ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ColumnDef:
    """One table column.

    ``accessor`` is the record key the column reads; display columns such as
    the clause link have none and can be neither sorted nor filtered.
    ``cell`` selects the render strategy: ``text``, ``clause_link`` or
    ``schedule``.
    """
    id: str
    header: str
    accessor: str | None = None
    cell: str = "text"
    width: str = ""

    @property
    def sortable(self) -> bool:
        return self.accessor is not None

    @property
    def filterable(self) -> bool:
        return self.accessor is not None


def _text(key: str, width: str, cell: str = "text") -> ColumnDef:
    return ColumnDef(id=key, header=key, accessor=key, cell=cell, width=width)


COLUMNS: tuple[ColumnDef, ...] = (
    _text("分類", "5%"),
    _text("No", "5%"),
    _text("法令名", "10%"),
    _text("条項", "5%"),
    ColumnDef(id="clause_link", header="条文", cell="clause_link", width="5%"),
    _text("所管省庁名", "10%"),
    _text("規制等の内容概要", "10%"),
    _text("規制等の類型", "5%"),
    _text("現在Phase", "5%"),
    _text("見直後Phase", "5%"),
    _text("見直し要否", "5%"),
    _text("見直し完了時期", "10%"),
    _text("工程表", "10%", cell="schedule"),
    _text("見直しの概要", "10%"),
)

SCHEDULE_COLUMN = "工程表"


# ── Matching and ordering ─────────────────────────────────────────────────────

_DIGIT_RUN = re.compile(r"(\d+)")


def cell_text(value: Any) -> str:
    return "" if value is None else str(value)


def matches_filter(value: Any, needle: str) -> bool:
    """Case-insensitive substring test; a missing value never matches."""
    if value is None:
        return False
    return needle.lower() in str(value).lower()


def alphanumeric_key(value: Any) -> tuple:
    """Sort key comparing digit runs numerically and text case-insensitively.

    Within a position a text chunk sorts before a number chunk, and a key
    that is a prefix of another sorts first.
    """
    chunks = [c for c in _DIGIT_RUN.split(cell_text(value).lower()) if c]
    return tuple((1, int(c), "") if c.isdigit() else (0, 0, c) for c in chunks)


@dataclass(frozen=True)
class SortSpec:
    column: str
    desc: bool = False

    def to_param(self) -> str:
        return f"-{self.column}" if self.desc else self.column

    @classmethod
    def from_param(cls, raw: str) -> "SortSpec":
        if raw.startswith("-"):
            return cls(raw[1:], desc=True)
        return cls(raw)


# ── State ─────────────────────────────────────────────────────────────────────

@dataclass
class TableState:
    """Filters, sort, pagination and link-site selection of one table view."""

    filters: dict[str, str] = field(default_factory=dict)
    sorting: list[SortSpec] = field(default_factory=list)
    page_index: int = 0
    page_size: int = 10
    clause_link_site: ClauseLinkSite = ClauseLinkSite.LAWTEXT

    def set_filter(self, column: str, value: str | None) -> None:
        """Set (or with an empty value, clear) one column filter.

        A change of filters sends the view back to the first page.
        """
        before = self.filters.get(column)
        if value:
            self.filters[column] = value
        else:
            self.filters.pop(column, None)
        if self.filters.get(column) != before:
            self.page_index = 0

    def filter_signature(self, exclude: str | None = None) -> str:
        """Stable text key of the active filters, optionally minus one column."""
        items = sorted((k, v) for k, v in self.filters.items() if k != exclude)
        return json.dumps(items, ensure_ascii=False)

    def set_page_size(self, size: int) -> None:
        """Change the page size, keeping the first visible row on screen."""
        if size not in PAGE_SIZES:
            raise ValueError(f"page size must be one of {list(PAGE_SIZES)}, got {size}")
        first_row = self.page_index * self.page_size
        self.page_size = size
        self.page_index = first_row // size

    def set_clause_link_site(self, site: Any) -> None:
        parsed = ClauseLinkSite.parse(site)
        if parsed is None:
            raise ValueError(
                f"clause link site must be one of {[s.value for s in ClauseLinkSite]}, "
                f"got {site!r}"
            )
        self.clause_link_site = parsed

    def sort_direction(self, column: str) -> str | None:
        """Return ``"asc"``/``"desc"`` if ``column`` is sorted, else None."""
        for spec in self.sorting:
            if spec.column == column:
                return "desc" if spec.desc else "asc"
        return None

    def toggle_sort(self, column: str, multi: bool = False) -> None:
        """Advance ``column`` through asc → desc → unsorted.

        With ``multi`` the column is added to (or updated within) the
        existing sort; otherwise it replaces it.
        """
        current = self.sort_direction(column)
        next_desc: bool | None
        if current is None:
            next_desc = False
        elif current == "asc":
            next_desc = True
        else:
            next_desc = None

        if not multi:
            self.sorting = [] if next_desc is None else [SortSpec(column, next_desc)]
            return

        if next_desc is None:
            self.sorting = [s for s in self.sorting if s.column != column]
        elif current is None:
            self.sorting = self.sorting + [SortSpec(column, next_desc)]
        else:
            self.sorting = [
                SortSpec(column, next_desc) if s.column == column else s
                for s in self.sorting
            ]


# ── Controller ────────────────────────────────────────────────────────────────

class TableController:
    """Derive the visible table from records and a ``TableState``.

    Usage::

        table = TableController(records, TableState(page_size=50))
        table.state.set_filter("法令名", "電波")
        table.next_page()
        rows = table.page_rows()
    """

    def __init__(self, records: list[Record], state: TableState | None = None,
                 columns: Iterable[ColumnDef] = COLUMNS,
                 facet_cache: TTLCache | None = None) -> None:
        self.records = records
        self.state = state if state is not None else TableState()
        self.columns = tuple(columns)
        self._by_id = {c.id: c for c in self.columns}
        self._facet_cache = facet_cache
        self._filtered_key: str | None = None
        self._filtered: list[Record] = []
        self._validate_state()
        self.state.page_index = self._clamp(self.state.page_index)

    def _validate_state(self) -> None:
        for column_id in self.state.filters:
            if not self.column(column_id).filterable:
                raise ValueError(f"column {column_id!r} cannot be filtered")
        for spec in self.state.sorting:
            if not self.column(spec.column).sortable:
                raise ValueError(f"column {spec.column!r} cannot be sorted")

    def column(self, column_id: str) -> ColumnDef:
        try:
            return self._by_id[column_id]
        except KeyError:
            raise ValueError(f"unknown column {column_id!r}") from None

    # ── Rows ──────────────────────────────────────────────────────────────

    def _rows_matching(self, exclude: str | None = None) -> list[Record]:
        active = [
            (self.column(column_id).accessor, needle)
            for column_id, needle in self.state.filters.items()
            if column_id != exclude
        ]
        if not active:
            return self.records
        return [
            r for r in self.records
            if all(matches_filter(r.get(key), needle) for key, needle in active)
        ]

    def filtered_rows(self) -> list[Record]:
        key = self.state.filter_signature()
        if key != self._filtered_key:
            self._filtered = self._rows_matching()
            self._filtered_key = key
        return self._filtered

    def sorted_rows(self) -> list[Record]:
        rows = list(self.filtered_rows())
        # Stable sorts applied from the last key to the first.
        for spec in reversed(self.state.sorting):
            accessor = self.column(spec.column).accessor
            rows.sort(key=lambda r: alphanumeric_key(r.get(accessor)), reverse=spec.desc)
        return rows

    def page_rows(self) -> list[Record]:
        start = self.state.page_index * self.state.page_size
        return self.sorted_rows()[start:start + self.state.page_size]

    @property
    def total_count(self) -> int:
        return len(self.records)

    @property
    def filtered_count(self) -> int:
        return len(self.filtered_rows())

    # ── Pagination ────────────────────────────────────────────────────────

    @property
    def page_count(self) -> int:
        return math.ceil(self.filtered_count / self.state.page_size)

    def _clamp(self, index: int) -> int:
        return max(0, min(index, self.page_count - 1))

    def can_previous_page(self) -> bool:
        return self.state.page_index > 0

    def can_next_page(self) -> bool:
        return self.state.page_index < self.page_count - 1

    def go_to_page(self, index: int) -> None:
        """Jump to a 0-based page index, clamped to the existing pages."""
        self.state.page_index = self._clamp(index)

    def go_to_page_number(self, number: Any) -> None:
        """Jump to a 1-based page number as typed in the page input.

        An empty value means the first page.

        Raises:
            ValueError: ``number`` is not an integer.
        """
        if number is None or (isinstance(number, str) and not number.strip()):
            self.go_to_page(0)
            return
        self.go_to_page(int(number) - 1)

    def first_page(self) -> None:
        self.go_to_page(0)

    def previous_page(self) -> None:
        self.go_to_page(self.state.page_index - 1)

    def next_page(self) -> None:
        self.go_to_page(self.state.page_index + 1)

    def last_page(self) -> None:
        self.go_to_page(self.page_count - 1)

    def navigate(self, action: str) -> None:
        """Apply one of ``first``/``previous``/``next``/``last``."""
        handlers = {
            "first": self.first_page,
            "previous": self.previous_page,
            "next": self.next_page,
            "last": self.last_page,
        }
        if action not in handlers:
            raise ValueError(f"unknown page action {action!r}")
        handlers[action]()

    # ── Facets ────────────────────────────────────────────────────────────

    def facet_values(self, column_id: str) -> list[str]:
        """Sorted distinct values of a column under every other filter.

        Numeric columns (judged by the first record) get no suggestions.
        """
        column = self.column(column_id)
        if not column.filterable:
            return []
        cache_key = (column_id, self.state.filter_signature(exclude=column_id))
        if self._facet_cache is not None:
            cached = self._facet_cache.get(cache_key)
            if cached is not None:
                return cached

        values: list[str] = []
        first = self.records[0].get(column.accessor) if self.records else None
        if not (isinstance(first, (int, float)) and not isinstance(first, bool)):
            distinct = {
                cell_text(r.get(column.accessor))
                for r in self._rows_matching(exclude=column_id)
                if r.get(column.accessor) is not None
            }
            values = sorted(distinct)

        if self._facet_cache is not None:
            self._facet_cache.set(cache_key, values)
        return values

    def facet_count(self, column_id: str) -> int:
        """Number of distinct values of a column under every other filter."""
        column = self.column(column_id)
        if not column.filterable:
            return 0
        return len({
            cell_text(r.get(column.accessor))
            for r in self._rows_matching(exclude=column_id)
            if r.get(column.accessor) is not None
        })

    def facet_suggestions(self, column_id: str) -> list[str]:
        """``facet_values`` truncated to the autocomplete limit."""
        return self.facet_values(column_id)[:FACET_LIMIT]

    # ── Cells ─────────────────────────────────────────────────────────────

    def clause_link(self, record: Record) -> str | None:
        return build_clause_link(record, self.state.clause_link_site)
