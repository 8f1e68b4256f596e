"""
Request Coordinator.

Owns at most one outstanding comp search per comp group. A newer
submission cancels the previous one, and only the outcome of the request
that is still current when it settles is ever applied.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Union

from utils.logging_config import get_logger

from .errors import ErrorKind, classify_exception, user_message
from .models import CompGroupSnapshot, CompType, FilterCriteria

if TYPE_CHECKING:
    from client.base import BaseCompService

logger = get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 20.0


# =============================================================================
# Outcomes
# =============================================================================

@dataclass(frozen=True)
class Success:
    """The search completed and is still current."""
    sequence: int
    criteria: FilterCriteria
    snapshot: CompGroupSnapshot


@dataclass(frozen=True)
class Cancelled:
    """The search was superseded or cancelled; never surfaced."""
    sequence: int
    criteria: FilterCriteria


@dataclass(frozen=True)
class Failure:
    """The search failed (transport, authorization or server)."""
    sequence: int
    criteria: FilterCriteria
    kind: ErrorKind
    message: str


SearchOutcome = Union[Success, Cancelled, Failure]


@dataclass(eq=False)
class PendingRequest:
    """An in-flight search and its cancellation handle."""
    sequence: int
    criteria: FilterCriteria
    task: Optional["asyncio.Task[SearchOutcome]"] = field(default=None, repr=False)
    voided: bool = False

    def cancel(self) -> None:
        """Void the request and abort its transport."""
        self.voided = True
        if self.task is not None and not self.task.done():
            self.task.cancel()


# =============================================================================
# Coordinator
# =============================================================================

class RequestCoordinator:
    """
    Issues comp searches for one comp group.

    Outcomes are dispatched to ``on_outcome`` only for the current request.
    A voided request's resolution, success or error, is dropped.
    """

    def __init__(
        self,
        service: "BaseCompService",
        property_id: str,
        evaluation_id: str,
        comp_type: CompType,
        on_outcome: Callable[[SearchOutcome], None],
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ):
        self._service = service
        self._property_id = property_id
        self._evaluation_id = evaluation_id
        self._comp_type = comp_type
        self._on_outcome = on_outcome
        self._timeout = timeout
        self._sequence = 0
        self._pending: Optional[PendingRequest] = None
        self._last_attempted: Optional[FilterCriteria] = None

    @property
    def pending(self) -> Optional[PendingRequest]:
        return self._pending

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    @property
    def last_attempted(self) -> Optional[FilterCriteria]:
        """Criteria of the most recent submission (used for manual retry)."""
        return self._last_attempted

    def submit(self, criteria: FilterCriteria) -> PendingRequest:
        """
        Cancel any current request and start a new search for ``criteria``.

        Must be called from the event loop. The returned request's ``task``
        resolves to the request's outcome and never raises.
        """
        self.cancel_pending()
        self._sequence += 1
        pending = PendingRequest(sequence=self._sequence, criteria=criteria)
        self._pending = pending
        self._last_attempted = criteria
        loop = asyncio.get_running_loop()
        pending.task = loop.create_task(self._execute(pending))
        logger.debug("Submitted %s comp search #%d", self._comp_type.value, pending.sequence)
        return pending

    def cancel_pending(self) -> bool:
        """Cancel the current request, if any. Returns True if one was cancelled."""
        pending = self._pending
        if pending is None:
            return False
        self._pending = None
        pending.cancel()
        logger.debug("Cancelled %s comp search #%d", self._comp_type.value, pending.sequence)
        return True

    async def _execute(self, pending: PendingRequest) -> SearchOutcome:
        try:
            snapshot = await asyncio.wait_for(
                self._service.search_comps(
                    self._property_id,
                    self._evaluation_id,
                    self._comp_type,
                    pending.criteria,
                ),
                timeout=self._timeout,
            )
        except asyncio.CancelledError:
            # The task is owned here and only cancelled through PendingRequest.cancel.
            outcome: SearchOutcome = Cancelled(pending.sequence, pending.criteria)
        except Exception as e:
            kind = classify_exception(e)
            outcome = Failure(pending.sequence, pending.criteria, kind, user_message(kind, e))
        else:
            if snapshot.comp_type is not self._comp_type:
                outcome = Failure(
                    pending.sequence,
                    pending.criteria,
                    ErrorKind.SERVER,
                    user_message(ErrorKind.SERVER),
                )
            else:
                outcome = Success(pending.sequence, pending.criteria, snapshot)
        self._settle(pending, outcome)
        return outcome

    def _settle(self, pending: PendingRequest, outcome: SearchOutcome) -> None:
        if pending.voided or self._pending is not pending:
            logger.debug(
                "Discarded %s comp search #%d (%s)",
                self._comp_type.value,
                pending.sequence,
                type(outcome).__name__,
            )
            return
        self._pending = None
        if isinstance(outcome, Cancelled):
            return
        self._on_outcome(outcome)
