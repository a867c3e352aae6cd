"""
shared/utils/table_session.py
Stateful wrapper around DataTable for one operator view.

- Every fetch is tagged with a generation token; a response whose token is not
  the latest issued is discarded, so results apply in request order rather than
  arrival order.
- Mutations are optimistic: the local row is patched first, then the write is
  awaited. A failed write restores the previous row and re-raises.

The partner and support routers keep one session per table, so list loads and
moderation actions from concurrent requests land on the same view.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from shared.schemas.schemas import TablePage
from shared.utils.table import DataTable, TableState

logger = logging.getLogger(__name__)


class RequestGenerations:
    """Monotonic request tokens. Only the most recently issued token is current."""

    def __init__(self):
        self._latest = 0

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    @property
    def latest(self) -> int:
        return self._latest


class TableSession:
    def __init__(self, table: DataTable, state: Optional[TableState] = None):
        self.table = table
        self.state = state or TableState()
        self.rows: List[Any] = []
        self.generations = RequestGenerations()
        self._lock = asyncio.Lock()

    # ── Loading ──────────────────────────────────────────────
    def begin(self) -> int:
        """Start a load. Hand the token back to `apply` with the result."""
        return self.generations.issue()

    def apply(self, token: int, rows: Optional[Sequence[Any]]) -> bool:
        """Replace the rows unless a newer load was started after `token`."""
        if not self.generations.is_current(token):
            logger.debug("Discarding stale table response %s (latest %s)", token, self.generations.latest)
            return False
        self.rows = list(rows or [])
        return True

    async def load(self, fetch: Callable[[], Awaitable[Sequence[Any]]]) -> bool:
        """Run `fetch` and apply its result. Returns whether it was applied."""
        token = self.begin()
        rows = await fetch()
        return self.apply(token, rows)

    # ── State transitions ────────────────────────────────────
    def set_filter(self, query: str) -> None:
        self.state = self.state.with_filter(query)

    def cycle_sort(self, column_id: str) -> None:
        self.state = self.state.cycle_sort(column_id)

    def set_page(self, page: int) -> None:
        self.state = self.state.with_page(page)

    def set_page_size(self, page_size: int) -> None:
        self.state = self.state.with_page_size(page_size, self.table.page_sizes)

    def toggle_column(self, column_id: str) -> None:
        self.state = self.state.toggle_column(column_id)

    def toggle_all_columns(self) -> None:
        self.state = self.table.toggle_all_columns(self.state)

    def toggle_expanded(self, row_id: str) -> None:
        self.state = self.state.toggle_expanded(row_id)

    def render(self) -> TablePage:
        return self.table.render(self.rows, self.state)

    # ── Optimistic mutations ─────────────────────────────────
    def _index_of(self, row_id: str) -> Optional[int]:
        for index, row in enumerate(self.rows):
            if self.table.key_of(row) == row_id:
                return index
        return None

    def row(self, row_id: str) -> Optional[Any]:
        index = self._index_of(row_id)
        return None if index is None else self.rows[index]

    def replace(self, row_id: str, row: Any) -> bool:
        """Swap in the authoritative row after a write. False if it is not loaded."""
        index = self._index_of(row_id)
        if index is None:
            return False
        self.rows[index] = row
        return True

    async def mutate(
        self,
        row_id: str,
        patch: Callable[[Any], Any],
        write: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Replace the row with `patch(row)` immediately, then await `write()`.
        If the write fails the original row is put back and the error propagates.
        A row that is not loaded has nothing to patch; the write still runs.
        """
        async with self._lock:
            index = self._index_of(row_id)
            original = patched = None
            if index is not None:
                original = self.rows[index]
                patched = self.rows[index] = patch(original)

        try:
            return await write()
        except Exception:
            if index is not None:
                async with self._lock:
                    # a reload may have replaced or dropped the row meanwhile
                    if self.row(row_id) is patched:
                        self.replace(row_id, original)
                logger.warning("Reverted optimistic update of row %s after failed write", row_id)
            raise
