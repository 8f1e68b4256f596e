"""
Tests for the Request Coordinator.

Stale responses must never be applied and cancellation is never surfaced.
"""

import asyncio

import pytest

from conftest import GatedCompService, drain, echo_search, make_snapshot
from core.comp_sync.coordinator import Cancelled, Failure, RequestCoordinator, Success
from core.comp_sync.errors import (
    AUTHORIZATION_MESSAGE,
    TRANSPORT_MESSAGE,
    AuthorizationError,
    ErrorKind,
    ServerError,
    TransportError,
)
from core.comp_sync.models import CompType, FilterCriteria


def make_coordinator(service, outcomes, timeout=5.0):
    return RequestCoordinator(
        service, "prop-1", "eval-1", CompType.SALE,
        on_outcome=outcomes.append, timeout=timeout,
    )


class TestSupersession:
    """A superseded request's resolution is a no-op."""

    def test_newer_request_wins_regardless_of_arrival_order(self):
        service = GatedCompService()
        outcomes = []

        async def scenario():
            coordinator = make_coordinator(service, outcomes)
            first = coordinator.submit(FilterCriteria(months_closed=3))
            await drain()
            second = coordinator.submit(FilterCriteria(months_closed=12))
            await drain()

            call_a, call_b = service.searches
            call_b.resolve(echo_search(call_b, [("b", True)]))
            call_a.resolve(echo_search(call_a, [("a", True)]))
            await asyncio.gather(first.task, second.task, return_exceptions=True)
            return first, second, call_a

        first, second, call_a = asyncio.run(scenario())

        assert len(outcomes) == 1
        assert isinstance(outcomes[0], Success)
        assert outcomes[0].sequence == second.sequence
        assert outcomes[0].snapshot.record_ids == ["b"]
        assert first.voided is True
        assert call_a.cancelled is True

    def test_cancellation_ignoring_service_is_still_discarded(self):
        """A transport that returns data after being cancelled is ignored."""
        outcomes = []

        class StubbornService(GatedCompService):
            async def search_comps(self, property_id, evaluation_id, comp_type, criteria):
                try:
                    return await super().search_comps(property_id, evaluation_id, comp_type, criteria)
                except asyncio.CancelledError:
                    return make_snapshot([("stale", True)], criteria=criteria)

        service = StubbornService()

        async def scenario():
            coordinator = make_coordinator(service, outcomes)
            coordinator.submit(FilterCriteria(months_closed=3))
            await drain()
            second = coordinator.submit(FilterCriteria(months_closed=12))
            await drain()
            call_b = service.searches[1]
            call_b.resolve(echo_search(call_b, [("fresh", True)]))
            await second.task
            await drain()

        asyncio.run(scenario())

        assert [type(o) for o in outcomes] == [Success]
        assert outcomes[0].snapshot.record_ids == ["fresh"]

    def test_sequence_numbers_increase(self):
        service = GatedCompService()

        async def scenario():
            coordinator = make_coordinator(service, [])
            first = coordinator.submit(FilterCriteria())
            second = coordinator.submit(FilterCriteria(months_closed=6))
            coordinator.cancel_pending()
            await drain()
            return first, second

        first, second = asyncio.run(scenario())

        assert second.sequence == first.sequence + 1


class TestCancellation:
    """Cancelled requests never reach on_outcome."""

    def test_cancel_pending(self):
        service = GatedCompService()
        outcomes = []

        async def scenario():
            coordinator = make_coordinator(service, outcomes)
            pending = coordinator.submit(FilterCriteria())
            await drain()
            assert coordinator.in_flight is True
            assert coordinator.cancel_pending() is True
            assert coordinator.in_flight is False
            assert coordinator.cancel_pending() is False
            result = await pending.task
            return result

        result = asyncio.run(scenario())

        assert isinstance(result, Cancelled)
        assert outcomes == []

    def test_last_attempted_kept_after_cancel(self):
        service = GatedCompService()
        criteria = FilterCriteria(months_closed=9)

        async def scenario():
            coordinator = make_coordinator(service, [])
            coordinator.submit(criteria)
            coordinator.cancel_pending()
            await drain()
            return coordinator.last_attempted

        assert asyncio.run(scenario()) is criteria


class TestFailures:
    """Failures are classified and dispatched as outcomes."""

    @pytest.mark.parametrize(
        "error, kind, message",
        [
            (TransportError("reset"), ErrorKind.TRANSPORT, TRANSPORT_MESSAGE),
            (ConnectionResetError(), ErrorKind.TRANSPORT, TRANSPORT_MESSAGE),
            (AuthorizationError("expired", 401), ErrorKind.AUTHORIZATION, AUTHORIZATION_MESSAGE),
            (ServerError("Invalid radius", 400), ErrorKind.SERVER, "Invalid radius"),
        ],
    )
    def test_failure_classification(self, error, kind, message):
        service = GatedCompService()
        outcomes = []

        async def scenario():
            coordinator = make_coordinator(service, outcomes)
            pending = coordinator.submit(FilterCriteria())
            await drain()
            service.searches[0].fail(error)
            await pending.task

        asyncio.run(scenario())

        assert len(outcomes) == 1
        assert isinstance(outcomes[0], Failure)
        assert outcomes[0].kind is kind
        assert outcomes[0].message == message

    def test_timeout_is_transport_failure(self):
        service = GatedCompService()
        outcomes = []

        async def scenario():
            coordinator = make_coordinator(service, outcomes, timeout=0.02)
            pending = coordinator.submit(FilterCriteria())
            await pending.task

        asyncio.run(scenario())

        assert outcomes[0].kind is ErrorKind.TRANSPORT

    def test_wrong_comp_type_is_server_failure(self):
        service = GatedCompService()
        outcomes = []

        async def scenario():
            coordinator = make_coordinator(service, outcomes)
            pending = coordinator.submit(FilterCriteria())
            await drain()
            service.searches[0].resolve(make_snapshot(comp_type=CompType.RENT))
            await pending.task

        asyncio.run(scenario())

        assert outcomes[0].kind is ErrorKind.SERVER

    def test_failure_clears_pending(self):
        service = GatedCompService()

        async def scenario():
            coordinator = make_coordinator(service, [])
            pending = coordinator.submit(FilterCriteria())
            await drain()
            service.searches[0].fail(ServerError("boom"))
            await pending.task
            return coordinator.in_flight

        assert asyncio.run(scenario()) is False
