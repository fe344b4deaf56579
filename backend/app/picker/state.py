"""Pure state holders used by the media picker: cursor stack and selection."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class PageCursor:
    after: Optional[str]
    page_number: int


class CursorStack:
    """History of ``after`` cursors so the picker can page backwards.

    The top entry always describes the page on screen; the stack never drops
    below the first-page entry ``PageCursor(None, 1)``.
    """

    def __init__(self):
        self._entries: List[PageCursor] = [PageCursor(None, 1)]

    @property
    def entries(self) -> List[PageCursor]:
        return list(self._entries)

    @property
    def top(self) -> PageCursor:
        return self._entries[-1]

    @property
    def page_number(self) -> int:
        return self.top.page_number

    @property
    def depth(self) -> int:
        return len(self._entries)

    @property
    def can_go_back(self) -> bool:
        return len(self._entries) > 1

    def reset(self) -> None:
        self._entries = [PageCursor(None, 1)]

    def push(self, after: str) -> PageCursor:
        entry = PageCursor(after, len(self._entries) + 1)
        self._entries.append(entry)
        return entry

    def pop(self) -> Optional[PageCursor]:
        """Drop the current page and return the new top, or None on page 1."""
        if not self.can_go_back:
            return None
        self._entries.pop()
        return self.top

    def restore(self, entries: Iterable[PageCursor]) -> None:
        entries = list(entries)
        if not entries:
            raise ValueError("cursor stack cannot be empty")
        self._entries = entries


class SelectionState:
    """Ordered, duplicate-free selection plus an optional hero.

    Invariant: ``hero_id`` is either None or a member of ``selected_ids``. It
    is re-checked after every mutation.
    """

    def __init__(self, multiple: bool = True, initial_ids: Optional[Iterable[str]] = None):
        self.multiple = multiple
        self._selected: List[str] = []
        for asset_id in initial_ids or []:
            if asset_id and asset_id not in self._selected:
                self._selected.append(asset_id)
        if not multiple:
            self._selected = self._selected[:1]
        self.hero_id: Optional[str] = self._selected[0] if self._selected else None
        self._check()

    @property
    def selected_ids(self) -> List[str]:
        return list(self._selected)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def _check(self) -> None:
        if len(set(self._selected)) != len(self._selected):
            raise RuntimeError("duplicate ids in selection")
        if self.hero_id is not None and self.hero_id not in self._selected:
            raise RuntimeError(f"hero {self.hero_id!r} is not selected")

    def toggle(self, asset_id: str) -> None:
        if not asset_id:
            return
        if not self.multiple:
            self._selected = [asset_id]
            self.hero_id = asset_id
        elif asset_id in self._selected:
            self._selected.remove(asset_id)
            if self.hero_id == asset_id:
                self.hero_id = None
        else:
            self._selected.append(asset_id)
        self._check()

    def set_hero(self, asset_id: str) -> None:
        if asset_id not in self._selected:
            raise ValueError(f"{asset_id!r} is not selected")
        self.hero_id = asset_id
        self._check()

    def move_up(self, index: int) -> None:
        if index <= 0 or index >= len(self._selected):
            return
        self._selected[index - 1], self._selected[index] = self._selected[index], self._selected[index - 1]
        self._check()

    def move_down(self, index: int) -> None:
        if index < 0 or index >= len(self._selected) - 1:
            return
        self._selected[index + 1], self._selected[index] = self._selected[index], self._selected[index + 1]
        self._check()

    def remove(self, asset_id: str) -> None:
        self._selected = [x for x in self._selected if x != asset_id]
        if self.hero_id == asset_id:
            self.hero_id = None
        self._check()

    def prepend(self, asset_ids: Iterable[str]) -> None:
        """Put freshly uploaded ids in front, keeping the hero if there is one.

        A single-select picker keeps only the first new id, which also becomes
        the hero.
        """

        new_ids: List[str] = []
        for asset_id in asset_ids:
            if asset_id and asset_id not in new_ids:
                new_ids.append(asset_id)
        if not new_ids:
            return

        if not self.multiple:
            self._selected = [new_ids[0]]
            self.hero_id = new_ids[0]
        else:
            self._selected = new_ids + [x for x in self._selected if x not in new_ids]
            if self.hero_id is None:
                self.hero_id = new_ids[0]
        self._check()

    def effective_hero(self) -> Optional[str]:
        """Hero to report on confirm: the tracked hero, else the first selected id."""
        if self.hero_id and self.hero_id in self._selected:
            return self.hero_id
        return self._selected[0] if self._selected else None
