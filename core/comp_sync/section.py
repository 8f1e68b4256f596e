"""
Comp Section.

Wires the filter store, debounce scheduler, request coordinator,
reconciliation merger and optimistic toggle controller of one comp group
together. This is the call contract of a presentation layer: it edits
filters, toggles comps, retries or dismisses errors, and reads the
snapshot back.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from utils.config import Config
from utils.logging_config import get_logger
from utils.preferences import DevicePreferences

from .coordinator import Failure, PendingRequest, RequestCoordinator, SearchOutcome, Success
from .debounce import DebounceScheduler
from .errors import BannerController, ErrorBanner, ErrorKind
from .filter_store import FilterStateStore
from .models import Comp, CompGroupSnapshot, CompType, Evaluation, FilterCriteria, SearchTypeOption
from .reconcile import ReconciliationMerger
from .search_types import SUBDIVISION, search_type_change, strip_subdivision_suffix
from .toggle import OptimisticToggleController, ToggleAction

if TYPE_CHECKING:
    from client.base import BaseCompService

logger = get_logger(__name__)

SEARCH_ERROR_KINDS = (ErrorKind.TRANSPORT, ErrorKind.SERVER, ErrorKind.AUTHORIZATION)


class CompSection:
    """
    Synchronization engine for one comp group of one evaluation.

    All methods must be called from the event loop thread; none of them
    block on the network.
    """

    def __init__(
        self,
        service: "BaseCompService",
        evaluation: Evaluation,
        comp_type: CompType,
        config: Optional[Config] = None,
        preferences: Optional[DevicePreferences] = None,
        search_types: Sequence[SearchTypeOption] = (),
        debounce_seconds: Optional[float] = None,
    ):
        """
        Args:
            service: Remote evaluation service.
            evaluation: Evaluation as last loaded; its comp group of
                ``comp_type`` seeds the snapshot.
            comp_type: Sale or rent.
            config: Timeouts and quiet periods (default: from environment).
            preferences: Device preferences for the map view toggle.
            search_types: Search-locality modes offered by the server.
            debounce_seconds: Override of the configured quiet period.
        """
        config = config or Config.load()
        self.comp_type = comp_type
        self.evaluation = evaluation
        self.search_types = list(search_types)
        self._preferences = preferences
        self._mounted = False
        self._closed = False
        self._show_map = False

        self.store = FilterStateStore(evaluation.comp_group(comp_type))
        self.merger = ReconciliationMerger()
        self.merger.mark_merged(self.store.criteria)
        self.banner = BannerController(auto_clear_seconds=config.error_auto_clear_seconds)
        self.coordinator = RequestCoordinator(
            service,
            evaluation.property_id,
            evaluation.id,
            comp_type,
            on_outcome=self._on_outcome,
            timeout=config.request_timeout,
        )
        delay = config.debounce_seconds(comp_type) if debounce_seconds is None else debounce_seconds
        self.scheduler = DebounceScheduler(self._submit, delay=delay)
        self.toggles = OptimisticToggleController(
            service,
            evaluation.property_id,
            evaluation.id,
            comp_type,
            store=self.store,
            merger=self.merger,
            scheduler=self.scheduler,
            coordinator=self.coordinator,
            banner=self.banner,
            timeout=config.request_timeout,
            on_settled=self._on_toggle_settled,
        )
        self._unsubscribe = self.store.subscribe(self._on_filter_change)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> CompGroupSnapshot:
        return self.store.snapshot

    @property
    def criteria(self) -> FilterCriteria:
        return self.store.criteria

    @property
    def records(self) -> List[Comp]:
        return list(self.store.snapshot.records)

    @property
    def error(self) -> Optional[ErrorBanner]:
        return self.banner.current

    @property
    def is_searching(self) -> bool:
        return self.coordinator.in_flight

    @property
    def show_map(self) -> bool:
        return self._show_map

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self) -> None:
        """
        First-load setup.

        Reads the map view preference and, once per section lifetime, fills
        an empty subdivision search term from the evaluation.
        """
        if self._mounted:
            return
        self._mounted = True
        if self._preferences is not None:
            self._show_map = self._preferences.get_bool(self._map_preference_key, False)

        criteria = self.store.criteria
        if criteria.search_type.lower() == SUBDIVISION and self.evaluation.subdivision:
            self.store.auto_populate_term(strip_subdivision_suffix(self.evaluation.subdivision))

    def close(self) -> None:
        """Cancel timers and outstanding remote calls."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self.scheduler.cancel_pending()
        self.coordinator.cancel_pending()
        self.toggles.cancel_all()
        self.banner.close()

    async def wait_idle(self) -> None:
        """Wait until no search is armed or in flight and no toggle is applying."""
        while True:
            tasks = self.toggles.pending_tasks()
            pending = self.coordinator.pending
            if pending is not None and pending.task is not None:
                tasks.append(pending.task)
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
                continue
            if self.scheduler.pending:
                await asyncio.sleep(self.scheduler.delay / 2 or 0.001)
                continue
            return

    # ------------------------------------------------------------------
    # Filter edits
    # ------------------------------------------------------------------

    def set_filter(self, immediate: bool = False, **changes: Any) -> FilterCriteria:
        """Edit the working criteria; a search follows after the quiet period."""
        return self.store.set_filter(immediate=immediate, **changes)

    def set_broad_search(self, enabled: bool) -> FilterCriteria:
        """Switch broad search on or off. Precision filters are kept."""
        return self.store.set_filter(
            immediate=True, ignore_parameters_except_months_closed=enabled
        )

    def change_search_type(self, search_type: str, default_radius: Optional[float] = None) -> FilterCriteria:
        """Switch the search-locality mode (immediate)."""
        changes = search_type_change(
            self.store.criteria,
            search_type,
            self.search_types,
            subdivision=self.evaluation.subdivision,
            default_radius=default_radius,
        )
        return self.store.set_filter(immediate=True, **changes)

    def reset_filters(self) -> FilterCriteria:
        """Restore the initial criteria (immediate)."""
        return self.store.reset()

    def _on_filter_change(self, criteria: FilterCriteria, immediate: bool) -> None:
        if self.toggles.is_applying:
            self.scheduler.cancel_pending()
            logger.debug("Filter change deferred until toggles settle")
            return
        if immediate:
            self.scheduler.schedule_immediate(criteria)
        else:
            self.scheduler.schedule(criteria)

    def _submit(self, criteria: FilterCriteria) -> Optional[PendingRequest]:
        if self.toggles.is_applying:
            logger.debug("Search deferred until toggles settle")
            return None
        if self.merger.is_redundant(criteria):
            # Working criteria already match the snapshot; drop anything older in flight.
            self.coordinator.cancel_pending()
            logger.debug("Skipped redundant %s comp search", self.comp_type.value)
            return None
        return self.coordinator.submit(criteria)

    # ------------------------------------------------------------------
    # Toggles
    # ------------------------------------------------------------------

    def toggle_comp(self, comp_id: str, include: Optional[bool] = None) -> ToggleAction:
        """Optimistically include or exclude one comp."""
        return self.toggles.toggle(comp_id, include)

    def _on_toggle_settled(self, action: ToggleAction) -> None:
        if self._closed or self.toggles.is_applying:
            return
        criteria = self.store.criteria
        if not self.merger.is_redundant(criteria):
            logger.debug("Resuming deferred %s comp search", self.comp_type.value)
            self.scheduler.schedule(criteria)

    # ------------------------------------------------------------------
    # Outcomes and errors
    # ------------------------------------------------------------------

    def _on_outcome(self, outcome: SearchOutcome) -> None:
        if isinstance(outcome, Success):
            self.merger.reconcile_search(self.store, outcome.snapshot, outcome.criteria)
            current = self.banner.current
            if current is not None and current.kind in SEARCH_ERROR_KINDS:
                self.banner.dismiss()
        elif isinstance(outcome, Failure):
            self.banner.show(ErrorBanner.for_failure(outcome.kind, outcome.message))

    def retry(self) -> Optional[PendingRequest]:
        """Re-submit the last attempted criteria unchanged, if the error allows it."""
        banner = self.banner.current
        criteria = self.coordinator.last_attempted
        if banner is None or not banner.retryable or criteria is None:
            return None
        self.banner.dismiss()
        if self.toggles.is_applying:
            return None
        self.scheduler.cancel_pending()
        return self.coordinator.submit(criteria)

    def dismiss_error(self) -> None:
        self.banner.dismiss()

    # ------------------------------------------------------------------
    # Map view preference
    # ------------------------------------------------------------------

    @property
    def _map_preference_key(self) -> str:
        return f"show_map_{self.comp_type.value}"

    def toggle_map_view(self) -> bool:
        """Flip the map view and persist the choice."""
        self._show_map = not self._show_map
        if self._preferences is not None:
            self._preferences.set_bool(self._map_preference_key, self._show_map)
        return self._show_map
