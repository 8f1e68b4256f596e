"""
Reconciliation Merger.

Merges a freshly returned server snapshot with the locally held one:

1. The server's record list is authoritative for descriptive fields, but
   records already present locally keep their local ``include`` flag.
   Brand-new records take the server's value.
2. An auto-populated local search term is not blanked by an empty server
   echo.
3. Criteria equal to what produced the last successful merge are reported
   as redundant so no search is issued for them.
"""

from __future__ import annotations

from dataclasses import replace
from typing import FrozenSet, Mapping, Optional

from utils.logging_config import get_logger

from .filter_store import FilterStateStore
from .models import CompGroupSnapshot, FilterCriteria

logger = get_logger(__name__)


class ReconciliationMerger:
    """
    Stateless merge rules plus the per-group memory needed for no-op detection.
    """

    def __init__(self):
        self._merged_fingerprints: FrozenSet[str] = frozenset()

    # ------------------------------------------------------------------
    # Pure merge
    # ------------------------------------------------------------------

    def merge(
        self,
        previous: CompGroupSnapshot,
        server: CompGroupSnapshot,
        local_search_term: str = "",
        auto_populated_term: Optional[str] = None,
        pinned: Optional[Mapping[str, bool]] = None,
    ) -> CompGroupSnapshot:
        """
        Build the new authoritative snapshot.

        Args:
            previous: Locally held snapshot (with optimistic flips applied).
            server: Snapshot returned by the remote service.
            local_search_term: Working search term at merge time.
            auto_populated_term: The term derived from evaluation metadata,
                if it is still the working term.
            pinned: ``include`` values that must win over both snapshots
                (toggles newer than any concurrently resolving response).

        Returns:
            The merged snapshot.
        """
        local_includes = previous.include_map()
        pinned = pinned or {}

        records = []
        for comp in server.records:
            if comp.id in pinned:
                include = pinned[comp.id]
            elif comp.id in local_includes:
                include = local_includes[comp.id]
            else:
                include = comp.include
            records.append(comp if comp.include == include else comp.with_include(include))

        criteria = self._guard_search_term(
            server.filter_criteria, local_search_term, auto_populated_term
        )
        return replace(server, records=tuple(records), filter_criteria=criteria)

    @staticmethod
    def _guard_search_term(
        echoed: FilterCriteria,
        local_search_term: str,
        auto_populated_term: Optional[str],
    ) -> FilterCriteria:
        if echoed.search_term:
            return echoed
        if not local_search_term or local_search_term != auto_populated_term:
            return echoed
        logger.debug("Kept auto-populated search term over empty server echo")
        return echoed.updated(search_term=local_search_term)

    # ------------------------------------------------------------------
    # Store-level reconciliation
    # ------------------------------------------------------------------

    def reconcile_search(
        self,
        store: FilterStateStore,
        server: CompGroupSnapshot,
        submitted: FilterCriteria,
    ) -> CompGroupSnapshot:
        """
        Apply a completed filter search to ``store``.

        The working criteria follow the merged echo only if they have not
        been edited since ``submitted`` went out.
        """
        working = store.criteria
        merged = self.merge(
            store.snapshot,
            server,
            local_search_term=working.search_term,
            auto_populated_term=store.auto_populated_term,
        )
        store.replace_snapshot(merged)
        if working.fingerprint() == submitted.fingerprint():
            store.adopt_criteria(merged.filter_criteria)
        self._remember(submitted, merged.filter_criteria)
        logger.info(
            "Merged %s comp search: %d records, %d included",
            merged.comp_type.value,
            len(merged.records),
            len(merged.included_records),
        )
        return merged

    def reconcile_toggle(
        self,
        store: FilterStateStore,
        server: CompGroupSnapshot,
        pinned: Mapping[str, bool],
    ) -> CompGroupSnapshot:
        """
        Apply the full snapshot returned by a committed toggle.

        Criteria are left as they are; a toggle response does not confirm
        a filter search.
        """
        merged = self.merge(store.snapshot, server, pinned=pinned)
        merged = replace(merged, filter_criteria=store.snapshot.filter_criteria)
        store.replace_snapshot(merged)
        return merged

    # ------------------------------------------------------------------
    # No-op detection
    # ------------------------------------------------------------------

    def is_redundant(self, criteria: FilterCriteria) -> bool:
        """True if ``criteria`` equal what produced the last successful merge."""
        return criteria.fingerprint() in self._merged_fingerprints

    def mark_merged(self, criteria: FilterCriteria) -> None:
        """Record criteria already reflected by the current snapshot (e.g. at mount)."""
        self._merged_fingerprints = frozenset({criteria.fingerprint()})

    def _remember(self, submitted: FilterCriteria, echoed: FilterCriteria) -> None:
        self._merged_fingerprints = frozenset({submitted.fingerprint(), echoed.fingerprint()})
