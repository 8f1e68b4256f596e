"""
Filter State Store.

Holds the working (possibly not yet submitted) filter criteria of one comp
group next to the authoritative snapshot last confirmed by the server.
No I/O; every criteria change is pushed to subscribers.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional

from utils.logging_config import get_logger

from .models import CompGroupSnapshot, FilterCriteria

logger = get_logger(__name__)

# listener(criteria, immediate)
FilterListener = Callable[[FilterCriteria, bool], None]
SnapshotListener = Callable[[CompGroupSnapshot], None]


class FilterStateStore:
    """
    Per-comp-group state container.

    The snapshot may only be replaced by the reconciliation merger and the
    optimistic toggle controller; the presentation layer edits criteria.
    """

    def __init__(self, snapshot: CompGroupSnapshot):
        self._snapshot = snapshot
        self._criteria = snapshot.filter_criteria
        self._mount_criteria = snapshot.filter_criteria
        self._filter_listeners: List[FilterListener] = []
        self._snapshot_listeners: List[SnapshotListener] = []
        self._auto_populated_term: Optional[str] = None
        self._auto_population_used = False

    # ------------------------------------------------------------------
    # Criteria
    # ------------------------------------------------------------------

    @property
    def criteria(self) -> FilterCriteria:
        """Working criteria (what the filter controls show)."""
        return self._criteria

    @property
    def initial_criteria(self) -> FilterCriteria:
        """Reset target provided by the server (falls back to the mount-time criteria)."""
        return self._snapshot.initial_filter_criteria or self._mount_criteria

    def set_filter(self, immediate: bool = False, **changes: Any) -> FilterCriteria:
        """
        Merge a partial update into the working criteria.

        Args:
            immediate: Mark the change as a discrete mode switch that must
                bypass the debounce quiet period.
            **changes: FilterCriteria field values.

        Returns:
            The new working criteria.

        Raises:
            ValueError: Unknown field or invalid resulting criteria. The
                working criteria are left untouched.
        """
        updated = self._criteria.updated(**changes)
        if "search_term" in changes and changes["search_term"] != self._auto_populated_term:
            self._auto_populated_term = None
        self._criteria = updated
        self._emit_filter(immediate)
        return updated

    def reset(self) -> FilterCriteria:
        """Restore the server-provided initial criteria (always immediate)."""
        self._criteria = self.initial_criteria
        self._auto_populated_term = None
        self._emit_filter(True)
        return self._criteria

    def adopt_criteria(self, criteria: FilterCriteria) -> None:
        """Replace the working criteria with a server echo without notifying."""
        if criteria.search_term != self._auto_populated_term:
            self._auto_populated_term = None
        self._criteria = criteria

    # ------------------------------------------------------------------
    # Auto-populated search term
    # ------------------------------------------------------------------

    @property
    def auto_populated_term(self) -> Optional[str]:
        """Search term derived from evaluation metadata, while still untouched."""
        return self._auto_populated_term

    def auto_populate_term(self, term: str) -> bool:
        """
        Fill an empty search term once per store lifetime.

        Returns True when the term was applied; the change is pushed to
        subscribers like a normal (debounced) edit.
        """
        if self._auto_population_used:
            return False
        self._auto_population_used = True
        if not term or self._criteria.search_term:
            return False
        self._criteria = self._criteria.updated(search_term=term)
        self._auto_populated_term = term
        logger.debug("Auto-populated search term: %s", term)
        self._emit_filter(False)
        return True

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> CompGroupSnapshot:
        """Authoritative snapshot (records, aggregate value, applied criteria)."""
        return self._snapshot

    def replace_snapshot(self, snapshot: CompGroupSnapshot) -> None:
        if snapshot.comp_type is not self._snapshot.comp_type:
            raise ValueError("snapshot comp type does not match the store")
        self._snapshot = snapshot
        for listener in list(self._snapshot_listeners):
            listener(snapshot)

    def set_include(self, comp_id: str, include: bool) -> bool:
        """
        Flip one record's inclusion flag in place.

        Returns:
            The previous value.

        Raises:
            KeyError: No record with ``comp_id``.
        """
        comp = self._snapshot.find(comp_id)
        if comp is None:
            raise KeyError(comp_id)
        self.replace_snapshot(self._snapshot.with_include(comp_id, include))
        return comp.include

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: FilterListener) -> Callable[[], None]:
        """Observe criteria changes. Returns an unsubscribe function."""
        self._filter_listeners.append(listener)
        return lambda: self._filter_listeners.remove(listener)

    def subscribe_snapshot(self, listener: SnapshotListener) -> Callable[[], None]:
        self._snapshot_listeners.append(listener)
        return lambda: self._snapshot_listeners.remove(listener)

    def _emit_filter(self, immediate: bool) -> None:
        for listener in list(self._filter_listeners):
            listener(self._criteria, immediate)
