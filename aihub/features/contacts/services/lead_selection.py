"""
Row selection state for a lead table rendered from tool output.

Rows that were already added to contacts stay visible but can no longer be
selected, and "select all" skips them. `promote_leads` uses it to reject rows
the client reports as already added.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass
class LeadSelection:
    row_count: int
    selected: set[int] = field(default_factory=set)
    added: set[int] = field(default_factory=set)

    def is_selectable(self, index: int) -> bool:
        return 0 <= index < self.row_count and index not in self.added

    def toggle(self, index: int) -> bool:
        """Flip one row; returns whether it is selected afterwards."""
        if not self.is_selectable(index):
            return False
        if index in self.selected:
            self.selected.discard(index)
            return False
        self.selected.add(index)
        return True

    @property
    def selectable(self) -> list[int]:
        return [index for index in range(self.row_count) if index not in self.added]

    @property
    def all_selected(self) -> bool:
        selectable = self.selectable
        return bool(selectable) and self.selected.issuperset(selectable)

    def toggle_all(self) -> None:
        if self.all_selected:
            self.selected.clear()
        else:
            self.selected = set(self.selectable)

    def mark_added(self, indexes: Iterable[int]) -> None:
        for index in indexes:
            if 0 <= index < self.row_count:
                self.added.add(index)
                self.selected.discard(index)

    def selected_rows(self) -> list[int]:
        return sorted(self.selected)
