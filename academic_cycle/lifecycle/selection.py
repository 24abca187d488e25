"""Working set of sections selected for the year being created or edited."""

from dataclasses import dataclass, field
from typing import FrozenSet, Hashable, Iterable, Mapping


@dataclass(frozen=True)
class SelectionDelta:
    added: FrozenSet[Hashable] = field(default_factory=frozenset)
    removed: FrozenSet[Hashable] = field(default_factory=frozenset)

    def __bool__(self) -> bool:
        return bool(self.added or self.removed)


def diff(old: Iterable[Hashable], new: Iterable[Hashable]) -> SelectionDelta:
    """Incremental form of replacing old by new: old - removed + added == new."""
    old_set, new_set = set(old), set(new)
    return SelectionDelta(added=frozenset(new_set - old_set), removed=frozenset(old_set - new_set))


class SelectionReconciler:
    """
    Selected section ids for one editing session.

    Every mutation goes through toggle/toggle_all/apply so that a caller sending a whole
    replacement list (replace) ends up on the same incremental path as manual toggling.
    Ids may be real section ids or pending temp ids ("temp-B") until substitute() swaps them.
    """

    def __init__(self, initial: Iterable[Hashable] = ()) -> None:
        self._selected = set(initial)
        self._baseline = frozenset(self._selected)

    @property
    def selected(self) -> FrozenSet[Hashable]:
        return frozenset(self._selected)

    @property
    def baseline(self) -> FrozenSet[Hashable]:
        return self._baseline

    def __contains__(self, item: Hashable) -> bool:
        return item in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def toggle(self, section_id: Hashable) -> bool:
        """Add if absent, remove if present. Returns whether the id is now selected."""
        if section_id in self._selected:
            self._selected.discard(section_id)
            return False
        self._selected.add(section_id)
        return True

    def toggle_all(self, candidates: Iterable[Hashable]) -> None:
        """Deselect the candidates if all are selected, otherwise select all of them.

        Ids outside candidates keep their state.
        """
        candidates = set(candidates)
        if candidates and candidates <= self._selected:
            self._selected -= candidates
        else:
            self._selected |= candidates

    @staticmethod
    def diff(old: Iterable[Hashable], new: Iterable[Hashable]) -> SelectionDelta:
        return diff(old, new)

    def apply(self, delta: SelectionDelta) -> None:
        for section_id in delta.added:
            if section_id not in self._selected:
                self.toggle(section_id)
        for section_id in delta.removed:
            if section_id in self._selected:
                self.toggle(section_id)

    def replace(self, new_ids: Iterable[Hashable]) -> SelectionDelta:
        delta = diff(self._selected, new_ids)
        self.apply(delta)
        return delta

    def substitute(self, mapping: Mapping[Hashable, Hashable]) -> None:
        """Swap temporary ids for the real ids they were committed as."""
        self._selected = {mapping.get(section_id, section_id) for section_id in self._selected}

    def discard(self, section_ids: Iterable[Hashable]) -> None:
        self._selected.difference_update(section_ids)

    def delta(self) -> SelectionDelta:
        """Changes since the session opened."""
        return diff(self._baseline, self._selected)

    def reset(self, ids: Iterable[Hashable] = ()) -> None:
        self._selected = set(ids)
        self._baseline = frozenset(self._selected)

