"""
Tests for the Reconciliation Merger.

Covers override preservation, the search-term echo guard and no-op
detection.
"""

from dataclasses import replace

import pytest

from conftest import make_snapshot
from core.comp_sync.filter_store import FilterStateStore
from core.comp_sync.models import FilterCriteria
from core.comp_sync.reconcile import ReconciliationMerger


@pytest.fixture
def merger():
    return ReconciliationMerger()


# =============================================================================
# Test: Rule 1 - record replacement with override preservation
# =============================================================================

class TestOverridePreservation:
    """Local include flags survive a merge; new records take the server's."""

    def test_existing_record_keeps_local_include(self, merger):
        previous = make_snapshot([("y", False)])
        server = make_snapshot([("y", True)])

        merged = merger.merge(previous, server)

        assert merged.find("y").include is False

    def test_new_record_takes_server_value(self, merger):
        previous = make_snapshot([("a", True)])
        server = make_snapshot([("a", True), ("c", False)])

        merged = merger.merge(previous, server)

        assert merged.find("c").include is False

    def test_server_order_and_membership_win(self, merger):
        previous = make_snapshot([("a", True), ("b", False)])
        server = make_snapshot([("c", True), ("a", True)])

        merged = merger.merge(previous, server)

        assert merged.record_ids == ["c", "a"]

    def test_descriptive_fields_come_from_server(self, merger):
        previous = make_snapshot([("a", False)])
        server = make_snapshot([("a", True)])
        server = replace(server, aggregate_value=410000)

        merged = merger.merge(previous, server)

        assert merged.aggregate_value == 410000
        assert merged.find("a").street == "A St"

    def test_pinned_values_beat_both_snapshots(self, merger):
        previous = make_snapshot([("a", True), ("b", True)])
        server = make_snapshot([("a", True), ("b", True)])

        merged = merger.merge(previous, server, pinned={"a": False})

        assert merged.find("a").include is False
        assert merged.find("b").include is True


# =============================================================================
# Test: Rule 2 - search term echo guard
# =============================================================================

class TestEchoGuard:
    """An empty echo must not blank an auto-populated term."""

    def test_auto_populated_term_kept_over_empty_echo(self, merger):
        server = make_snapshot(criteria=FilterCriteria(search_term="", months_closed=6))

        merged = merger.merge(
            make_snapshot(), server,
            local_search_term="OAK HOLLOW", auto_populated_term="OAK HOLLOW",
        )

        assert merged.filter_criteria.search_term == "OAK HOLLOW"
        assert merged.filter_criteria.months_closed == 6

    def test_user_typed_term_not_guarded(self, merger):
        server = make_snapshot(criteria=FilterCriteria(search_term=""))

        merged = merger.merge(
            make_snapshot(), server,
            local_search_term="ELM", auto_populated_term=None,
        )

        assert merged.filter_criteria.search_term == ""

    def test_non_empty_echo_wins(self, merger):
        server = make_snapshot(criteria=FilterCriteria(search_term="OAK"))

        merged = merger.merge(
            make_snapshot(), server,
            local_search_term="OAK HOLLOW", auto_populated_term="OAK HOLLOW",
        )

        assert merged.filter_criteria.search_term == "OAK"

    def test_guard_is_limited_to_search_term(self, merger):
        server = make_snapshot(criteria=FilterCriteria(confine_to_zip=""))

        merged = merger.merge(
            make_snapshot(), server,
            local_search_term="OAK HOLLOW", auto_populated_term="OAK HOLLOW",
        )

        assert merged.filter_criteria.confine_to_zip == ""


# =============================================================================
# Test: Store-level reconciliation and Rule 3 - no-op detection
# =============================================================================

class TestReconcileSearch:
    """Tests for applying a completed search to the store."""

    def test_replaces_snapshot_and_adopts_echo(self, merger):
        store = FilterStateStore(make_snapshot())
        submitted = store.set_filter(months_closed=12)
        server = make_snapshot([("a", True)], criteria=FilterCriteria(months_closed=12, beds_min=1))

        merger.reconcile_search(store, server, submitted)

        assert store.snapshot.record_ids == ["a"]
        assert store.criteria.beds_min == 1

    def test_edit_since_submit_is_not_overwritten(self, merger):
        store = FilterStateStore(make_snapshot())
        submitted = store.set_filter(months_closed=12)
        store.set_filter(beds_min=3)
        server = make_snapshot(criteria=FilterCriteria(months_closed=12))

        merger.reconcile_search(store, server, submitted)

        assert store.criteria.beds_min == 3
        assert store.snapshot.filter_criteria.beds_min is None

    def test_submitted_and_echoed_criteria_become_redundant(self, merger):
        store = FilterStateStore(make_snapshot())
        submitted = store.set_filter(months_closed=12)
        echoed = FilterCriteria(months_closed=12, beds_min=1)

        merger.reconcile_search(store, make_snapshot(criteria=echoed), submitted)

        assert merger.is_redundant(submitted)
        assert merger.is_redundant(echoed)
        assert not merger.is_redundant(FilterCriteria(months_closed=6))

    def test_identical_criteria_instance_is_redundant(self, merger):
        """Structurally equal criteria are suppressed."""
        merger.mark_merged(FilterCriteria(months_closed=6, beds_min=2))

        assert merger.is_redundant(FilterCriteria(beds_min=2, months_closed=6))

    def test_integral_float_matches_int(self, merger):
        merger.mark_merged(FilterCriteria(months_closed=6, baths_min=2))

        assert merger.is_redundant(FilterCriteria(months_closed=6.0, baths_min=2.0))
        assert not merger.is_redundant(FilterCriteria(months_closed=6, baths_min=2.5))

    def test_store_edit_with_float_is_redundant(self, merger):
        store = FilterStateStore(make_snapshot(criteria=FilterCriteria(months_closed=6)))
        merger.mark_merged(store.criteria)

        assert merger.is_redundant(store.set_filter(months_closed=6.0))

    def test_mark_merged_replaces_memory(self, merger):
        merger.mark_merged(FilterCriteria(months_closed=6))
        merger.mark_merged(FilterCriteria(months_closed=12))

        assert not merger.is_redundant(FilterCriteria(months_closed=6))


class TestReconcileToggle:
    """Toggle responses leave criteria alone."""

    def test_keeps_criteria_and_pins_toggle(self, merger):
        store = FilterStateStore(make_snapshot(criteria=FilterCriteria(months_closed=6)))
        store.set_include("a", False)
        server = make_snapshot([("a", True), ("b", True)], criteria=FilterCriteria(months_closed=99))

        merger.reconcile_toggle(store, server, pinned={"a": False})

        assert store.snapshot.filter_criteria.months_closed == 6
        assert store.snapshot.find("a").include is False
