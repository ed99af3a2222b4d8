"""
Records endpoints.

GET /api/v1/columns                → column descriptors
GET /api/v1/records                → filtered, sorted, paginated records
GET /api/v1/records/{index}        → one record with its clause link
GET /api/v1/facets/{column}        → autocomplete values for one column

Table state uses the same query parameters as the HTML page:
``f.<column>``, ``sort`` (repeatable, ``-`` prefix for descending), ``page``
(1-based), ``size`` and ``site``.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.models import ColumnOut, FacetOut, RecordOut, RecordPage, SortOut
from api.state import ViewState, get_ready_view, table_state_from_params
from utils.config import FACET_LIMIT
from utils.links import ClauseLinkSite, build_clause_link
from utils.records import Record
from utils.table import COLUMNS, SCHEDULE_COLUMN, TableState

router = APIRouter(tags=["records"])


def _record_out(index: int, record: Record, view: ViewState,
                site: ClauseLinkSite) -> RecordOut:
    group = view.schedule.group_for(record.get(SCHEDULE_COLUMN))
    return RecordOut(
        index=index,
        clause_link=build_clause_link(record, site),
        schedule_group=group.name if group else None,
        data=record,
    )


@router.get("/columns", response_model=list[ColumnOut], summary="List table columns")
def list_columns() -> list[ColumnOut]:
    """Return the column descriptors in display order."""
    return [
        ColumnOut(
            id=c.id, header=c.header, accessor=c.accessor, cell=c.cell,
            width=c.width, sortable=c.sortable, filterable=c.filterable,
        )
        for c in COLUMNS
    ]


@router.get("/records", response_model=RecordPage, summary="List records")
def list_records(
    request: Request,
    view: ViewState = Depends(get_ready_view),
) -> RecordPage:
    """Return one page of records under the requested filters and sort."""
    state = table_state_from_params(request.query_params, view)
    table = view.table(state)
    # Positions in the loaded dataset, independent of sort order.
    positions = {id(r): i for i, r in enumerate(view.records)}
    return RecordPage(
        total=table.total_count,
        filtered=table.filtered_count,
        page=state.page_index + 1,
        page_size=state.page_size,
        page_count=table.page_count,
        site=state.clause_link_site.value,
        filters=state.filters,
        sorting=[
            SortOut(column=s.column, direction="desc" if s.desc else "asc")
            for s in state.sorting
        ],
        items=[
            _record_out(positions[id(r)], r, view, state.clause_link_site)
            for r in table.page_rows()
        ],
    )


@router.get("/records/{index}", response_model=RecordOut, summary="Get one record")
def get_record(
    index: int,
    site: str | None = Query(None, description="Lawtext | e-Gov; defaults to APP_CLAUSE_LINK_SITE"),
    view: ViewState = Depends(get_ready_view),
) -> RecordOut:
    """Return a single record by its position in the dataset."""
    parsed = view.default_site if site is None else ClauseLinkSite.parse(site)
    if parsed is None:
        raise ValueError(f"site must be one of {[s.value for s in ClauseLinkSite]}")
    if not 0 <= index < len(view.records):
        raise HTTPException(status_code=404, detail=f"Record {index} not found")
    return _record_out(index, view.records[index], view, parsed)


@router.get("/facets/{column}", response_model=FacetOut, summary="Column facet values")
def get_facets(
    column: str,
    request: Request,
    view: ViewState = Depends(get_ready_view),
) -> FacetOut:
    """Return the sorted distinct values of ``column`` under the other filters."""
    state: TableState = table_state_from_params(request.query_params, view)
    table = view.table(state)
    if not table.column(column).filterable:
        raise ValueError(f"column {column!r} has no values to suggest")
    values = table.facet_values(column)
    return FacetOut(
        column=column,
        distinct=table.facet_count(column),
        truncated=len(values) > FACET_LIMIT,
        values=values[:FACET_LIMIT],
    )
