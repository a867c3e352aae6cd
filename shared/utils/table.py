"""
shared/utils/table.py
Generic in-memory table engine: global free-text filter, single-column sort,
pagination, column visibility and expandable rows.

The engine is a pure mapping from (rows, TableState) to a TablePage. It knows
nothing about where the rows came from; filtering only reads each row's
precomputed search index, so a keystroke costs one substring test per row.

    table = DataTable(
        columns=[Column("name", "Name"), Column("booking_count", "Bookings", sort_type="numeric")],
        empty_message="No courses yet.",
        no_match_message="No courses match the current filters.",
    )
    page = table.render(courses, TableState(global_filter="tennis", page_size=25))
"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Sequence, Set

from fastapi import HTTPException, Query, status
from pydantic import Field

from config.settings import settings
from shared.schemas.schemas import BaseSchema, ColumnState, SortState, TablePage
from shared.utils.search_index import matches_search_index

SortType = Literal["auto", "numeric", "text", "datetime"]
SearchPredicate = Callable[[Any, str], bool]


def read_value(row: Any, path: str) -> Any:
    """Resolve a dotted path against dicts and attribute objects."""
    value = row
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def row_search_index(row: Any) -> str:
    if isinstance(row, dict):
        return row.get("__searchIndex") or row.get("search_index") or ""
    return getattr(row, "search_index", "") or ""


def search_index_predicate(row: Any, query: str) -> bool:
    return matches_search_index(row_search_index(row), query)


class Column:
    """A table column. `accessor` is a dotted path or a callable over the row."""

    def __init__(
        self,
        id: str,
        header: str,
        accessor: Optional[Any] = None,
        sortable: bool = True,
        hideable: bool = True,
        sort_type: SortType = "auto",
    ):
        self.id = id
        self.header = header
        self.accessor = accessor or id
        self.sortable = sortable
        self.hideable = hideable
        self.sort_type = sort_type

    def value(self, row: Any) -> Any:
        if callable(self.accessor):
            return self.accessor(row)
        return read_value(row, self.accessor)


class TableState(BaseSchema):
    """Everything the engine needs besides the rows. Transitions return new states."""
    global_filter: str = ""
    sort: Optional[SortState] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1)
    visibility: Dict[str, bool] = {}
    expanded: Set[str] = set()

    def with_filter(self, query: str) -> "TableState":
        return self.model_copy(update={"global_filter": query or "", "page": 1})

    def cycle_sort(self, column_id: str) -> "TableState":
        """Unsorted -> ascending -> descending -> unsorted. A new column starts ascending."""
        current = self.sort
        if current is None or current.column != column_id:
            new_sort = SortState(column=column_id, desc=False)
        elif not current.desc:
            new_sort = SortState(column=column_id, desc=True)
        else:
            new_sort = None
        return self.model_copy(update={"sort": new_sort})

    def with_page(self, page: int) -> "TableState":
        return self.model_copy(update={"page": max(int(page), 1)})

    def with_page_size(self, page_size: int, allowed: Sequence[int] = ()) -> "TableState":
        allowed = allowed or settings.TABLE_PAGE_SIZES
        if page_size not in allowed:
            raise ValueError(f"page size {page_size} is not one of {list(allowed)}")
        return self.model_copy(update={"page_size": page_size, "page": 1})

    def toggle_column(self, column_id: str) -> "TableState":
        visibility = dict(self.visibility)
        visibility[column_id] = not visibility.get(column_id, True)
        return self.model_copy(update={"visibility": visibility})

    def toggle_expanded(self, row_id: str) -> "TableState":
        expanded = set(self.expanded)
        expanded.symmetric_difference_update({row_id})
        return self.model_copy(update={"expanded": expanded})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _sort_key(sort_type: SortType, values: Iterable[Any]) -> Callable[[Any], Any]:
    present = [value for value in values if value is not None]
    if sort_type == "auto":
        if present and all(_is_number(value) for value in present):
            sort_type = "numeric"
        elif present and all(isinstance(value, datetime) for value in present):
            sort_type = "datetime"
        else:
            sort_type = "text"

    if sort_type == "numeric":
        def numeric(value):
            try:
                return float(value)
            except (TypeError, ValueError):
                return math.inf
        return numeric
    if sort_type == "datetime":
        return lambda value: value.timestamp() if isinstance(value, datetime) else math.inf
    return lambda value: str(value).casefold()


class DataTable:
    """Table definition for one call-site: columns plus its two empty-state messages."""

    def __init__(
        self,
        columns: Sequence[Column],
        empty_message: str = "No records yet.",
        no_match_message: str = "No results match the current filters.",
        search_predicate: SearchPredicate = search_index_predicate,
        row_id: Any = "id",
        can_expand: Optional[Callable[[Any], bool]] = None,
        render_sub_row: Optional[Callable[[Any], Any]] = None,
        page_sizes: Optional[Sequence[int]] = None,
    ):
        if empty_message == no_match_message:
            raise ValueError("empty_message and no_match_message must differ")
        self.columns = list(columns)
        self.empty_message = empty_message
        self.no_match_message = no_match_message
        self.search_predicate = search_predicate
        self.row_id = row_id
        self.can_expand = can_expand
        self.render_sub_row = render_sub_row
        self.page_sizes = list(page_sizes or settings.TABLE_PAGE_SIZES)

    def column(self, column_id: str) -> Optional[Column]:
        return next((column for column in self.columns if column.id == column_id), None)

    def key_of(self, row: Any) -> str:
        value = self.row_id(row) if callable(self.row_id) else read_value(row, self.row_id)
        return "" if value is None else str(value)

    # ── Pipeline stages ──────────────────────────────────────
    def filter_rows(self, rows: Sequence[Any], query: str) -> List[Any]:
        if not (query or "").strip():
            return list(rows)
        return [row for row in rows if self.search_predicate(row, query)]

    def sort_rows(self, rows: List[Any], sort: Optional[SortState]) -> List[Any]:
        column = self.column(sort.column) if sort else None
        if column is None or not column.sortable:
            return rows
        values = [(column.value(row), row) for row in rows]
        key = _sort_key(column.sort_type, (value for value, _ in values))
        present = [pair for pair in values if pair[0] is not None]
        missing = [row for value, row in values if value is None]
        present.sort(key=lambda pair: key(pair[0]), reverse=sort.desc)
        return [row for _, row in present] + missing

    def visible_columns(self, state: TableState) -> List[ColumnState]:
        return [
            ColumnState(
                id=column.id,
                header=column.header,
                visible=(not column.hideable) or state.visibility.get(column.id, True),
                sortable=column.sortable,
                hideable=column.hideable,
            )
            for column in self.columns
        ]

    def toggle_all_columns(self, state: TableState) -> TableState:
        """Hide every hideable column if all are visible, otherwise show them all."""
        hideable = [column.id for column in self.columns if column.hideable]
        if not hideable:
            return state
        all_visible = all(state.visibility.get(column_id, True) for column_id in hideable)
        visibility = dict(state.visibility)
        for column_id in hideable:
            visibility[column_id] = not all_visible
        return state.model_copy(update={"visibility": visibility})

    # ── Render ───────────────────────────────────────────────
    def render(self, rows: Optional[Sequence[Any]], state: Optional[TableState] = None) -> TablePage:
        state = state or TableState(page_size=settings.TABLE_DEFAULT_PAGE_SIZE)
        rows = list(rows or [])

        filtered = self.filter_rows(rows, state.global_filter)
        ordered = self.sort_rows(filtered, state.sort)

        page_count = max(math.ceil(len(ordered) / state.page_size), 1)
        page = min(state.page, page_count)
        start = (page - 1) * state.page_size
        page_rows = ordered[start:start + state.page_size]

        if not rows:
            empty_message = self.empty_message
        elif not filtered:
            empty_message = self.no_match_message
        else:
            empty_message = None

        expanded = {}
        if self.render_sub_row and state.expanded:
            for row in page_rows:
                row_key = self.key_of(row)
                if row_key in state.expanded and (self.can_expand is None or self.can_expand(row)):
                    expanded[row_key] = self.render_sub_row(row)

        sort = state.sort if state.sort and self.column(state.sort.column) else None
        return TablePage(
            rows=page_rows,
            columns=self.visible_columns(state),
            total_rows=len(rows),
            filtered_rows=len(filtered),
            page=page,
            page_size=state.page_size,
            page_count=page_count,
            page_sizes=self.page_sizes,
            sort=sort,
            global_filter=state.global_filter,
            expanded=expanded,
            empty_message=empty_message,
        )


# ── FastAPI dependency ────────────────────────────────────────

def table_params(
    q: str = Query("", max_length=200, description="Free-text filter"),
    sort: Optional[str] = Query(None, description="Column id to sort by"),
    desc: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, description="One of TABLE_PAGE_SIZES"),
    hidden: List[str] = Query([], description="Column ids to hide"),
    expanded: List[str] = Query([], description="Row ids to expand"),
) -> TableState:
    """Table state from query parameters."""
    size = page_size or settings.TABLE_DEFAULT_PAGE_SIZE
    if size not in settings.TABLE_PAGE_SIZES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"page_size must be one of {settings.TABLE_PAGE_SIZES}",
        )
    return TableState(
        global_filter=q,
        sort=SortState(column=sort, desc=desc) if sort else None,
        page=page,
        page_size=size,
        visibility={column_id: False for column_id in hidden},
        expanded=set(expanded),
    )
