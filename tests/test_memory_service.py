"""
Tests for the in-memory comp service used by the stub API.
"""

import asyncio
from datetime import date

import pytest

from client.memory import DEFAULT_CRITERIA, InMemoryCompService, Subject
from core.comp_sync.errors import ServerError, TransportError
from core.comp_sync.models import CompType, FilterCriteria

AS_OF = date(2024, 6, 1)


@pytest.fixture
def service():
    service = InMemoryCompService(seed=3, as_of=AS_OF)
    service.seed_evaluation("p", "e", subject=Subject(sqft=2000, year_built=2000))
    return service


def search(service, criteria, comp_type=CompType.SALE):
    return asyncio.run(service.search_comps("p", "e", comp_type, criteria))


class TestSeed:

    def test_seeded_groups_use_default_criteria(self, service):
        evaluation = service.evaluation("p", "e")

        for comp_type in CompType:
            group = evaluation.comp_group(comp_type)
            assert group.filter_criteria == DEFAULT_CRITERIA
            assert group.initial_filter_criteria == DEFAULT_CRITERIA

    def test_same_seed_same_comps(self):
        first = InMemoryCompService(seed=11, as_of=AS_OF).seed_evaluation("p", "e")
        second = InMemoryCompService(seed=11, as_of=AS_OF).seed_evaluation("p", "e")

        assert first.sale_comp_group.records == second.sale_comp_group.records


class TestSearch:

    def test_filters_are_applied(self, service):
        group = search(service, FilterCriteria(beds_min=4, sqft_plus_minus=300, months_closed=6))

        for comp in group.records:
            assert comp.beds >= 4
            assert abs(comp.sqft - 2000) <= 300
            assert date.fromisoformat(comp.date_sold) >= date(2023, 12, 4)

    def test_broad_search_ignores_precision_fields(self, service):
        narrow = search(service, FilterCriteria(beds_min=5, months_closed=12))
        broad = search(
            service,
            FilterCriteria(beds_min=5, months_closed=12, ignore_parameters_except_months_closed=True),
        )

        assert len(broad.records) >= len(narrow.records)
        assert broad.filter_criteria.beds_min == 5

    def test_subdivision_term(self, service):
        group = search(service, FilterCriteria(search_term="oak hollow"))

        assert group.records
        assert all(comp.subdivision == "OAK HOLLOW" for comp in group.records)

    def test_invalid_radius(self, service):
        with pytest.raises(ServerError) as exc_info:
            search(service, FilterCriteria(search_type="radius", search_term="far"))

        assert exc_info.value.status_code == 400

    def test_unknown_search_type(self, service):
        with pytest.raises(ServerError):
            search(service, FilterCriteria(search_type="galaxy", search_term="x"))

    def test_known_includes_survive_search(self, service):
        comp_id = service.evaluation("p", "e").sale_comp_group.records[0].id
        asyncio.run(service.set_comp_inclusion("p", "e", CompType.SALE, comp_id, False))

        group = search(service, FilterCriteria())

        assert group.find(comp_id).include is False

    def test_initial_criteria_kept(self, service):
        group = search(service, FilterCriteria(months_closed=3))

        assert group.initial_filter_criteria == DEFAULT_CRITERIA


class TestAggregates:

    def test_excluding_every_comp_zeroes_aggregate(self, service):
        group = service.evaluation("p", "e").rent_comp_group
        for comp in group.records:
            group = asyncio.run(service.set_comp_inclusion("p", "e", CompType.RENT, comp.id, False))

        assert group.aggregate_value == 0
        assert group.trends == ()

    def test_sale_aggregate_rounded_to_thousands(self, service):
        group = service.evaluation("p", "e").sale_comp_group

        assert group.aggregate_value % 1000 == 0
        assert group.aggregate_value > 0


class TestFailures:

    def test_fail_next_is_raised_once(self, service):
        service.fail_next(TransportError("down"))

        with pytest.raises(TransportError):
            asyncio.run(service.get_evaluation("p", "e"))
        assert asyncio.run(service.get_evaluation("p", "e")).id == "e"

    def test_calls_are_recorded(self, service):
        search(service, FilterCriteria(), CompType.RENT)

        assert service.calls == ["search_comps:rent"]
