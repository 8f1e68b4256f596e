"""
Shared fakes for the comp sync tests.

The gated service parks every remote call until the test resolves or
fails it, so request orderings can be driven step by step.
"""

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from client.base import BaseCompService
from core.comp_sync.models import (
    Comp,
    CompGroupSnapshot,
    CompType,
    Evaluation,
    FilterCriteria,
    SearchTypeOption,
)


# =============================================================================
# Builders
# =============================================================================

def make_snapshot(
    records: Sequence[Tuple[str, bool]] = (("a", True), ("b", True)),
    criteria: Optional[FilterCriteria] = None,
    comp_type: CompType = CompType.SALE,
    initial: Optional[FilterCriteria] = None,
) -> CompGroupSnapshot:
    """Snapshot with ``(id, include)`` records."""
    return CompGroupSnapshot(
        comp_type=comp_type,
        filter_criteria=criteria or FilterCriteria(months_closed=6),
        records=tuple(
            Comp(id=comp_id, include=include, street=f"{comp_id.upper()} St", sqft=1800)
            for comp_id, include in records
        ),
        initial_filter_criteria=initial,
    )


def make_evaluation(
    sale: Optional[CompGroupSnapshot] = None,
    rent: Optional[CompGroupSnapshot] = None,
    subdivision: str = "",
) -> Evaluation:
    return Evaluation(
        id="eval-1",
        property_id="prop-1",
        subdivision=subdivision,
        sale_comp_group=sale or make_snapshot(),
        rent_comp_group=rent or make_snapshot(comp_type=CompType.RENT),
    )


async def drain(rounds: int = 10) -> None:
    """Let ready callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# =============================================================================
# Gated service
# =============================================================================

@dataclass(eq=False)
class GatedCall:
    """One parked remote call."""
    kind: str
    comp_type: CompType
    criteria: Optional[FilterCriteria] = None
    comp_id: Optional[str] = None
    include: Optional[bool] = None
    gate: asyncio.Event = field(default_factory=asyncio.Event)
    result: Optional[CompGroupSnapshot] = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    def resolve(self, result: CompGroupSnapshot) -> None:
        self.result = result
        self.gate.set()

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.gate.set()


class GatedCompService(BaseCompService):
    """
    Fake remote service.

    With ``responder`` set, calls answer immediately with
    ``responder(call)``; otherwise they wait for ``resolve``/``fail``.
    """

    def __init__(self, evaluation: Optional[Evaluation] = None):
        self.evaluation = evaluation or make_evaluation()
        self.calls: List[GatedCall] = []
        self.responder: Optional[Callable[[GatedCall], CompGroupSnapshot]] = None

    @property
    def searches(self) -> List[GatedCall]:
        return [c for c in self.calls if c.kind == "search"]

    @property
    def toggles(self) -> List[GatedCall]:
        return [c for c in self.calls if c.kind == "toggle"]

    async def get_evaluation(self, property_id: str, evaluation_id: str) -> Evaluation:
        return self.evaluation

    async def get_search_types(self, property_id: str, evaluation_id: str) -> List[SearchTypeOption]:
        return [SearchTypeOption("subdivision"), SearchTypeOption("radius", "1")]

    async def search_comps(self, property_id, evaluation_id, comp_type, criteria):
        return await self._park(GatedCall("search", comp_type, criteria=criteria))

    async def set_comp_inclusion(self, property_id, evaluation_id, comp_type, comp_id, include):
        return await self._park(GatedCall("toggle", comp_type, comp_id=comp_id, include=include))

    async def _park(self, call: GatedCall) -> CompGroupSnapshot:
        self.calls.append(call)
        if self.responder is not None:
            call.resolve(self.responder(call))
        try:
            await call.gate.wait()
        except asyncio.CancelledError:
            call.cancelled = True
            raise
        if call.error is not None:
            raise call.error
        return call.result


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def snapshot():
    return make_snapshot()


@pytest.fixture
def evaluation(snapshot):
    return make_evaluation(sale=snapshot)


@pytest.fixture
def service(evaluation):
    return GatedCompService(evaluation)


@pytest.fixture
def quiet_config():
    """Config with short timers for fast tests."""
    from utils.config import Config

    return Config(
        api_base_url="http://testserver/v1",
        session_key="",
        request_timeout=5.0,
        sale_debounce_seconds=0.05,
        rent_debounce_seconds=0.05,
        error_auto_clear_seconds=8.0,
        preferences_path="unused.json",
    )


def echo_search(call: GatedCall, records: Sequence[Tuple[str, bool]] = (("a", True), ("b", True))) -> CompGroupSnapshot:
    """Server-style answer echoing the submitted criteria."""
    return make_snapshot(records, criteria=call.criteria, comp_type=call.comp_type)
