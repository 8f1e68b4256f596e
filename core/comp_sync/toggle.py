"""
Optimistic Toggle Controller.

Flips a comp's ``include`` flag locally before the remote call, blocks
filter-driven searches while the call is outstanding and rolls the flip
back if the call fails.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from utils.logging_config import get_logger

from .coordinator import RequestCoordinator
from .debounce import DebounceScheduler
from .errors import (
    BannerController,
    ErrorBanner,
    ErrorKind,
    classify_exception,
    user_message,
)
from .filter_store import FilterStateStore
from .models import CompGroupSnapshot, CompType
from .reconcile import ReconciliationMerger

if TYPE_CHECKING:
    from client.base import BaseCompService

logger = get_logger(__name__)


class ToggleState(Enum):
    """Lifecycle of one toggle action."""
    IDLE = "idle"
    APPLYING = "applying"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(eq=False)
class ToggleAction:
    """One user toggle of one comp."""
    comp_id: str
    include: bool
    previous_include: bool
    state: ToggleState = ToggleState.IDLE
    error: Optional[ErrorKind] = None
    task: Optional["asyncio.Task[ToggleAction]"] = field(default=None, repr=False)


class OptimisticToggleController:
    """
    Applies inclusion toggles for one comp group.

    Toggles on different records run independently. A second toggle of the
    same record supersedes the first locally (last write wins); the
    superseded action no longer owns the record's flag when it settles.
    """

    def __init__(
        self,
        service: "BaseCompService",
        property_id: str,
        evaluation_id: str,
        comp_type: CompType,
        store: FilterStateStore,
        merger: ReconciliationMerger,
        scheduler: DebounceScheduler,
        coordinator: RequestCoordinator,
        banner: BannerController,
        timeout: float,
        on_settled: Optional[Callable[[ToggleAction], None]] = None,
    ):
        self._service = service
        self._property_id = property_id
        self._evaluation_id = evaluation_id
        self._comp_type = comp_type
        self._store = store
        self._merger = merger
        self._scheduler = scheduler
        self._coordinator = coordinator
        self._banner = banner
        self._timeout = timeout
        self._on_settled = on_settled
        # Outstanding actions per record, oldest first
        self._chains: Dict[str, List[ToggleAction]] = {}
        # Newest action per record while any of its actions is outstanding
        self._latest: Dict[str, ToggleAction] = {}

    @property
    def is_applying(self) -> bool:
        """True while any toggle awaits its remote commit."""
        return bool(self._chains)

    def pending_tasks(self) -> List["asyncio.Task[ToggleAction]"]:
        return [
            action.task
            for chain in self._chains.values()
            for action in chain
            if action.task is not None and not action.task.done()
        ]

    def cancel_all(self) -> None:
        """Abort every outstanding commit; each one rolls back."""
        for task in self.pending_tasks():
            task.cancel()

    def toggle(self, comp_id: str, include: Optional[bool] = None) -> ToggleAction:
        """
        Flip ``comp_id`` now and persist it in the background.

        Args:
            comp_id: Record to toggle.
            include: Target value (default: the opposite of the current one).

        Returns:
            The action; ``action.task`` resolves when it is committed or
            rolled back.

        Raises:
            KeyError: ``comp_id`` is not in the current snapshot.
        """
        comp = self._store.snapshot.find(comp_id)
        if comp is None:
            raise KeyError(comp_id)
        target = (not comp.include) if include is None else include

        action = ToggleAction(comp_id=comp_id, include=target, previous_include=comp.include)
        action.state = ToggleState.APPLYING
        self._store.set_include(comp_id, target)
        self._chains.setdefault(comp_id, []).append(action)
        self._latest[comp_id] = action

        # A filter search landing now would carry a pre-toggle snapshot.
        if self._scheduler.cancel_pending():
            logger.debug("Toggle of %s suspended a pending filter search", comp_id)
        if self._coordinator.cancel_pending():
            logger.debug("Toggle of %s cancelled an in-flight filter search", comp_id)

        loop = asyncio.get_running_loop()
        action.task = loop.create_task(self._commit(action))
        return action

    async def _commit(self, action: ToggleAction) -> ToggleAction:
        try:
            server = await asyncio.wait_for(
                self._service.set_comp_inclusion(
                    self._property_id,
                    self._evaluation_id,
                    self._comp_type,
                    action.comp_id,
                    action.include,
                ),
                timeout=self._timeout,
            )
        except asyncio.CancelledError:
            self._roll_back(action, None)
            self._finish(action)
            raise
        except Exception as e:
            self._roll_back(action, e)
        else:
            self._apply_commit(action, server)
        self._finish(action)
        return action

    def _apply_commit(self, action: ToggleAction, server: CompGroupSnapshot) -> None:
        # The newest intent per record wins, even when an older action commits last.
        pinned = {comp_id: self._latest[comp_id].include for comp_id in self._chains}
        if server.comp_type is self._comp_type:
            self._merger.reconcile_toggle(self._store, server, pinned)
        action.state = ToggleState.COMMITTED
        if self._latest.get(action.comp_id) is action:
            logger.info(
                "Committed %s comp %s include=%s", self._comp_type.value, action.comp_id, action.include
            )
        else:
            logger.debug(
                "Committed superseded %s comp %s include=%s",
                self._comp_type.value, action.comp_id, action.include,
            )

    def _roll_back(self, action: ToggleAction, exc: Optional[BaseException]) -> None:
        action.state = ToggleState.ROLLED_BACK
        chain = self._chains.get(action.comp_id, [])
        if self._latest.get(action.comp_id) is action:
            try:
                self._store.set_include(action.comp_id, action.previous_include)
            except KeyError:
                # Record vanished from the snapshot; nothing to revert.
                pass
            position = chain.index(action) if action in chain else 0
            if position > 0:
                # The older outstanding toggle owns the flag again.
                self._latest[action.comp_id] = chain[position - 1]
        elif action in chain and chain.index(action) + 1 < len(chain):
            # Superseded: the next outstanding toggle now reverts to what this one replaced.
            successor = chain[chain.index(action) + 1]
            successor.previous_include = action.previous_include
        if exc is None:
            return
        kind = classify_exception(exc)
        if kind is not ErrorKind.AUTHORIZATION:
            kind = ErrorKind.TOGGLE
        action.error = kind
        logger.warning(
            "Rolled back %s comp %s include=%s: %s",
            self._comp_type.value,
            action.comp_id,
            action.include,
            exc,
        )
        self._banner.show(ErrorBanner.for_failure(kind, user_message(kind, exc)))

    def _finish(self, action: ToggleAction) -> None:
        chain = self._chains.get(action.comp_id, [])
        if action in chain:
            chain.remove(action)
        if not chain:
            self._chains.pop(action.comp_id, None)
            self._latest.pop(action.comp_id, None)
        if self._on_settled is not None:
            self._on_settled(action)
