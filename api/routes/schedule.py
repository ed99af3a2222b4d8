"""
Schedule (roadmap) endpoints.

GET /api/v1/schedule/head                   → timeline columns
GET /api/v1/schedule/groups                 → all groups with their items
GET /api/v1/schedule/groups/{name}/layout   → grid layout for one group

``name`` may be either the normalized key or a raw record value (note
markers are stripped before the lookup).
"""

from fastapi import APIRouter, Depends, HTTPException

from api.models import (
    GridCellOut,
    ScheduleGroupOut,
    ScheduleHeadOut,
    ScheduleItemOut,
    ScheduleLayoutOut,
)
from api.state import ViewState, get_ready_view
from utils.schedule import layout_schedule

router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.get("/head", response_model=list[ScheduleHeadOut], summary="Timeline columns")
def list_head(view: ViewState = Depends(get_ready_view)) -> list[ScheduleHeadOut]:
    return [
        ScheduleHeadOut(column=h.column, year=h.year, month=h.month)
        for h in view.schedule.head
    ]


@router.get("/groups", response_model=list[ScheduleGroupOut], summary="Schedule groups")
def list_groups(view: ViewState = Depends(get_ready_view)) -> list[ScheduleGroupOut]:
    """Return every group in load order."""
    return [
        ScheduleGroupOut(
            key=key,
            name=group.name,
            items=[
                ScheduleItemOut(name=i.name, start_column=i.start_column, end_column=i.end_column)
                for i in group.items
            ],
        )
        for key, group in view.schedule.groups.items()
    ]


@router.get(
    "/groups/{name}/layout",
    response_model=ScheduleLayoutOut,
    summary="Timeline layout for one group",
)
def group_layout(name: str, view: ViewState = Depends(get_ready_view)) -> ScheduleLayoutOut:
    group = view.schedule.group_for(name)
    if group is None:
        raise HTTPException(status_code=404, detail=f"Schedule group {name!r} not found")
    layout = layout_schedule(view.schedule, group)
    return ScheduleLayoutOut(
        group=layout.group_name,
        tracks=layout.tracks,
        offset=layout.offset,
        grid_template_columns=layout.grid_template_columns,
        cells=[
            GridCellOut(
                kind=c.kind, text=c.text,
                row_start=c.row_start, row_end=c.row_end,
                column_start=c.column_start, column_end=c.column_end,
            )
            for c in layout.cells
        ],
    )
