"""
Row accessors over a thread's columnar tables.

Columns are looked up by name through each table's schema, never by
fixed position, because the profiler may reorder columns between
format versions.  Every row reference is bounds-checked: a bad
reference means the trace is corrupt and raises
``TraceCorruptionError``.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from apiusage.models import trace
from apiusage.utils.errors import TraceCorruptionError, TraceDecodeError

JAVASCRIPT_CATEGORY = "JavaScript"


def _column(table: trace.Table, table_name: str, column: str) -> int:
    """Return the position of *column* in *table*'s schema."""
    try:
        position = table.schema_[column]
    except KeyError:
        raise TraceCorruptionError(f"{table_name} has no {column!r} column") from None
    if position < 0:
        raise TraceCorruptionError(f"{table_name} column {column!r} has invalid position {position!r}")
    return position


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ThreadReader:
    """Read-only view of one thread's stack, frame, sample and string tables."""

    def __init__(self, thread: trace.Thread, categories: list[trace.Category]) -> None:
        self._thread = thread
        self._categories = categories

        self._stack_prefix = _column(thread.stack_table, "stackTable", "prefix")
        self._stack_frame = _column(thread.stack_table, "stackTable", "frame")
        self._frame_location = _column(thread.frame_table, "frameTable", "location")
        self._frame_category = _column(thread.frame_table, "frameTable", "category")
        self._frame_window = _column(thread.frame_table, "frameTable", "innerWindowID")
        self._sample_stack = _column(thread.samples, "samples", "stack")

    # ==========================================================================
    # Raw access
    # ==========================================================================

    @staticmethod
    def _cell(table: trace.Table, table_name: str, row_id: Any, column: int) -> Any:
        if not _is_index(row_id) or not 0 <= row_id < len(table.data):
            raise TraceCorruptionError(
                f"{table_name} row {row_id!r} out of range (rows={len(table.data)})"
            )
        row = table.data[row_id]
        if column >= len(row):
            raise TraceCorruptionError(f"{table_name} row {row_id} is too short")
        return row[column]

    def _stack_cell(self, stack_id: Any, column: int) -> Any:
        return self._cell(self._thread.stack_table, "stackTable", stack_id, column)

    def _frame_cell(self, frame_id: Any, column: int) -> Any:
        return self._cell(self._thread.frame_table, "frameTable", frame_id, column)

    # ==========================================================================
    # Samples
    # ==========================================================================

    def sample_stacks(self) -> Iterator[int]:
        """Yield the stack id of every sample that has a stack."""
        for row in self._thread.samples.data:
            if self._sample_stack >= len(row):
                raise TraceCorruptionError("samples row is too short")
            stack_id = row[self._sample_stack]
            if stack_id is None:
                continue
            yield stack_id

    # ==========================================================================
    # Stacks
    # ==========================================================================

    def is_root(self, stack_id: int) -> bool:
        """Return True if *stack_id* has no parent."""
        return self._stack_cell(stack_id, self._stack_prefix) is None

    def parent_of(self, stack_id: int) -> int | None:
        """Return the parent stack id, or ``None`` for a root stack."""
        parent = self._stack_cell(stack_id, self._stack_prefix)
        if parent is not None and not _is_index(parent):
            raise TraceCorruptionError(f"stack {stack_id} has a non-integer prefix {parent!r}")
        return parent

    def frame_of(self, stack_id: int) -> int:
        """Return the frame id of *stack_id*."""
        return self._stack_cell(stack_id, self._stack_frame)

    def ancestors(self, stack_id: int) -> Iterator[int]:
        """Yield the non-root ancestors of *stack_id*, nearest first.

        Walks parent pointers iteratively.  Revisiting a stack means
        the table contains a cycle, which is trace corruption.
        """
        seen = {stack_id}
        current = self.parent_of(stack_id)
        while current is not None:
            if current in seen:
                raise TraceCorruptionError(f"stack cycle detected at stack {current}")
            seen.add(current)
            parent = self.parent_of(current)
            if parent is None:
                return
            yield current
            current = parent

    # ==========================================================================
    # Frames
    # ==========================================================================

    def label_of(self, frame_id: int) -> str:
        """Return the human-readable label of *frame_id*."""
        string_id = self._frame_cell(frame_id, self._frame_location)
        strings = self._thread.string_table
        if not _is_index(string_id) or not 0 <= string_id < len(strings):
            raise TraceCorruptionError(f"frame {frame_id} references missing string {string_id!r}")
        return strings[string_id]

    def category_name_of(self, frame_id: int) -> str | None:
        """Return the category name of *frame_id*, or ``None`` if uncategorised."""
        category_id = self._frame_cell(frame_id, self._frame_category)
        if category_id is None:
            return None
        if not _is_index(category_id) or not 0 <= category_id < len(self._categories):
            raise TraceCorruptionError(f"frame {frame_id} references missing category {category_id!r}")
        return self._categories[category_id].name

    def window_of(self, frame_id: int) -> int | None:
        """Return the owning window id of *frame_id*, if recorded."""
        window_id = self._frame_cell(frame_id, self._frame_window)
        return window_id if _is_index(window_id) else None

    def is_javascript(self, frame_id: int) -> bool:
        """Return True if *frame_id* is interpreted-script execution."""
        return self.category_name_of(frame_id) == JAVASCRIPT_CATEGORY

    # ==========================================================================
    # Convenience
    # ==========================================================================

    def stack_label(self, stack_id: int) -> str:
        """Return the label of the frame at *stack_id*."""
        return self.label_of(self.frame_of(stack_id))


def decode_trace(raw: bytes | str) -> trace.TraceDocument:
    """Decode a JSON trace document.

    Raises:
        TraceDecodeError: If *raw* is not JSON or does not match the
            trace model.
    """
    try:
        return trace.TraceDocument.model_validate_json(raw)
    except ValueError as exc:
        raise TraceDecodeError(f"Not a trace document: {exc}") from exc
