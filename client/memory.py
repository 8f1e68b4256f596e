"""
In-memory comp service for development and testing.
Generates realistic placeholder comps without external requests and
applies comp searches the way the remote evaluation API does.
"""

import asyncio
import random
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from core.comp_sync.errors import ServerError
from core.comp_sync.models import (
    Comp,
    CompGroupSnapshot,
    CompTrend,
    CompType,
    Evaluation,
    FilterCriteria,
    SearchTypeOption,
)
from core.comp_sync.search_types import strip_subdivision_suffix
from utils.logging_config import get_logger

from .base import BaseCompService

logger = get_logger(__name__)

DEFAULT_CRITERIA = FilterCriteria(
    search_type="subdivision",
    sqft_plus_minus=500,
    beds_min=2,
    beds_max=5,
    baths_min=1,
    baths_max=4,
    year_built_plus_minus=20,
    months_closed=6,
)


@dataclass(frozen=True)
class Subject:
    """The evaluated property, used for the relative (+/-) filters."""
    sqft: int = 2000
    year_built: int = 2000
    latitude: float = 30.2672
    longitude: float = -97.7431


class InMemoryCompService(BaseCompService):
    """Comp service that keeps evaluations in process memory."""

    CITIES = ["Austin", "Round Rock", "Pflugerville", "Cedar Park", "Georgetown"]
    COUNTIES = ["Travis", "Williamson"]
    ZIPS = ["78660", "78664", "78681", "78613", "78628"]
    STREETS = ["Oak", "Cedar", "Mesquite", "Willow", "Pecan", "Live Oak"]
    SUFFIXES = ["Dr", "Ln", "Ct", "Trl", "Cv", "Way"]
    OTHER_SUBDIVISIONS = ["BRUSHY CREEK", "WELLS BRANCH", "SUMMIT AT LAKELINE", "FOREST CREEK"]

    def __init__(
        self,
        seed: Optional[int] = None,
        latency: float = 0.0,
        pool_size: int = 40,
        as_of: Optional[date] = None,
    ):
        """
        Initialize in-memory service.

        Args:
            seed: Optional random seed for reproducible comps.
            latency: Seconds each call waits before answering.
            pool_size: Candidate comps generated per comp type.
            as_of: Reference date for the recency window (default: today).
        """
        self._random = random.Random(seed)
        self.latency = latency
        self.pool_size = pool_size
        self.as_of = as_of or date.today()
        self._evaluations: Dict[Tuple[str, str], Evaluation] = {}
        self._subjects: Dict[Tuple[str, str], Subject] = {}
        self._pools: Dict[Tuple[str, str, CompType], List[Comp]] = {}
        self._failures: List[Exception] = []
        self.calls: List[str] = []

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def seed_evaluation(
        self,
        property_id: str,
        evaluation_id: str,
        subdivision: str = "OAK HOLLOW PHASE 2",
        county: str = "Travis",
        subject: Optional[Subject] = None,
        criteria: Optional[FilterCriteria] = None,
    ) -> Evaluation:
        """
        Create an evaluation with generated comp pools and initial groups.

        Returns:
            The stored Evaluation.
        """
        key = (property_id, evaluation_id)
        subject = subject or Subject()
        self._subjects[key] = subject
        neighbourhood = strip_subdivision_suffix(subdivision) or "OAK HOLLOW"
        for comp_type in CompType:
            self._pools[key + (comp_type,)] = [
                self._generate_comp(comp_type, i, neighbourhood, subject)
                for i in range(self.pool_size)
            ]

        evaluation = Evaluation(id=evaluation_id, property_id=property_id,
                                subdivision=subdivision, county=county)
        self._evaluations[key] = evaluation
        initial = criteria or DEFAULT_CRITERIA
        for comp_type in CompType:
            group = self._run_search(key, comp_type, initial, {})
            self._store_group(evaluation, replace(group, initial_filter_criteria=initial))
        return evaluation

    def evaluation(self, property_id: str, evaluation_id: str) -> Evaluation:
        """Stored evaluation, bypassing latency and injected failures."""
        return self._get(property_id, evaluation_id)

    def fail_next(self, error: Exception) -> None:
        """Raise ``error`` from the next call instead of answering it."""
        self._failures.append(error)

    # ------------------------------------------------------------------
    # BaseCompService
    # ------------------------------------------------------------------

    async def get_evaluation(self, property_id: str, evaluation_id: str) -> Evaluation:
        await self._before_call("get_evaluation")
        return self._get(property_id, evaluation_id)

    async def get_search_types(self, property_id: str, evaluation_id: str) -> List[SearchTypeOption]:
        await self._before_call("get_search_types")
        self._get(property_id, evaluation_id)
        return [
            SearchTypeOption("subdivision", "", "Subdivision"),
            SearchTypeOption("radius", "1", "Radius (miles)"),
            SearchTypeOption("zip", "", "ZIP code"),
            SearchTypeOption("city", "", "City"),
            SearchTypeOption("county", "", "County"),
        ]

    async def search_comps(
        self,
        property_id: str,
        evaluation_id: str,
        comp_type: CompType,
        criteria: FilterCriteria,
    ) -> CompGroupSnapshot:
        await self._before_call(f"search_comps:{comp_type.value}")
        key = (property_id, evaluation_id)
        evaluation = self._get(property_id, evaluation_id)
        current = evaluation.comp_group(comp_type)
        group = self._run_search(key, comp_type, criteria, current.include_map())
        group = replace(group, initial_filter_criteria=current.initial_filter_criteria)
        self._store_group(evaluation, group)
        logger.debug("Stub search %s: %d comps", comp_type.value, len(group.records))
        return group

    async def set_comp_inclusion(
        self,
        property_id: str,
        evaluation_id: str,
        comp_type: CompType,
        comp_id: str,
        include: bool,
    ) -> CompGroupSnapshot:
        await self._before_call(f"set_comp_inclusion:{comp_type.value}")
        evaluation = self._get(property_id, evaluation_id)
        group = evaluation.comp_group(comp_type)
        if group.find(comp_id) is None:
            raise ServerError(f"Comp {comp_id} not found", status_code=404)
        subject = self._subjects[(property_id, evaluation_id)]
        group = self._with_aggregates(group.with_include(comp_id, include), subject)
        self._store_group(evaluation, group)
        return group

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _before_call(self, name: str) -> None:
        self.calls.append(name)
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._failures:
            raise self._failures.pop(0)

    def _get(self, property_id: str, evaluation_id: str) -> Evaluation:
        evaluation = self._evaluations.get((property_id, evaluation_id))
        if evaluation is None:
            raise ServerError("Evaluation not found", status_code=404)
        return evaluation

    @staticmethod
    def _store_group(evaluation: Evaluation, group: CompGroupSnapshot) -> None:
        if group.comp_type is CompType.SALE:
            evaluation.sale_comp_group = group
        else:
            evaluation.rent_comp_group = group

    def _run_search(
        self,
        key: Tuple[str, str],
        comp_type: CompType,
        criteria: FilterCriteria,
        known_includes: Dict[str, bool],
    ) -> CompGroupSnapshot:
        subject = self._subjects[key]
        pool = self._pools[key + (comp_type,)]
        records = tuple(
            comp.with_include(known_includes.get(comp.id, True))
            for comp in pool
            if self._matches(comp, criteria, subject)
        )
        group = CompGroupSnapshot(
            comp_type=comp_type,
            filter_criteria=criteria,
            records=records,
            counties=tuple(self.COUNTIES),
            zips=tuple(self.ZIPS),
        )
        return self._with_aggregates(group, subject)

    def _matches(self, comp: Comp, criteria: FilterCriteria, subject: Subject) -> bool:
        applied = criteria.effective()
        if applied.months_closed:
            cutoff = self.as_of - timedelta(days=30 * applied.months_closed)
            if date.fromisoformat(comp.date_sold) < cutoff:
                return False
        if not self._matches_locality(comp, applied):
            return False
        if applied.confine_to_county and comp.market.lower() != applied.confine_to_county.lower():
            return False
        if applied.confine_to_zip and comp.zip != applied.confine_to_zip:
            return False
        if not _within(comp.beds, applied.beds_min, applied.beds_max):
            return False
        if not _within(comp.baths, applied.baths_min, applied.baths_max):
            return False
        if not _within(comp.garage, applied.garage_min, applied.garage_max):
            return False
        if applied.sqft_plus_minus and abs(comp.sqft - subject.sqft) > applied.sqft_plus_minus:
            return False
        if (applied.year_built_plus_minus
                and abs(comp.year_built - subject.year_built) > applied.year_built_plus_minus):
            return False
        return True

    @staticmethod
    def _matches_locality(comp: Comp, criteria: FilterCriteria) -> bool:
        term = criteria.search_term.strip()
        if not term:
            return True
        search_type = criteria.search_type.lower()
        if search_type == "subdivision":
            return term.upper() in comp.subdivision.upper()
        if search_type == "radius":
            try:
                radius = float(term)
            except ValueError:
                raise ServerError(f"Invalid radius: {term}", status_code=400) from None
            return comp.distance_miles is not None and comp.distance_miles <= radius
        if search_type == "zip":
            return comp.zip == term
        if search_type == "city":
            return comp.city.lower() == term.lower()
        if search_type == "county":
            return comp.market.lower() == term.lower()
        raise ServerError(f"Unknown search type: {criteria.search_type}", status_code=400)

    def _with_aggregates(self, group: CompGroupSnapshot, subject: Subject) -> CompGroupSnapshot:
        included = group.included_records
        if not included:
            return replace(group, aggregate_value=0, average_price=0,
                           average_price_per_sqft=0, trends=())
        average_price = sum(c.price_sold for c in included) / len(included)
        average_ppsf = sum(c.price_per_sqft for c in included) / len(included)
        trends = []
        for months in (3, 6, 12):
            cutoff = self.as_of - timedelta(days=30 * months)
            window = [c for c in included if date.fromisoformat(c.date_sold) >= cutoff]
            if not window:
                continue
            trends.append(CompTrend(
                description=f"Last {months} months",
                avg_sale_price=round(sum(c.price_sold for c in window) / len(window)),
                avg_price_per_sqft=round(sum(c.price_per_sqft for c in window) / len(window), 2),
            ))
        if group.comp_type is CompType.SALE:
            aggregate = round(average_ppsf * subject.sqft / 1000) * 1000
        else:
            aggregate = round(average_price / 25) * 25
        return replace(
            group,
            aggregate_value=aggregate,
            average_price=round(average_price),
            average_price_per_sqft=round(average_ppsf, 2),
            trends=tuple(trends),
        )

    def _generate_comp(self, comp_type: CompType, index: int, neighbourhood: str, subject: Subject) -> Comp:
        """Generate a single placeholder comp."""
        rng = self._random
        beds = rng.randint(2, 5)
        baths = rng.choice([1, 1.5, 2, 2.5, 3, 3.5])
        sqft = max(800, subject.sqft + rng.randint(-900, 900))

        if comp_type is CompType.SALE:
            price_per_sqft = rng.uniform(180, 260)
            price = round(sqft * price_per_sqft / 1000) * 1000
        else:
            price_per_sqft = rng.uniform(1.1, 1.6)
            price = round(sqft * price_per_sqft / 25) * 25

        city_index = rng.randrange(len(self.CITIES))
        in_neighbourhood = rng.random() < 0.6
        days_ago = rng.randint(5, 365)

        return Comp(
            id=f"{comp_type.value}-{index + 1:03d}",
            street=f"{rng.randint(100, 9999)} {rng.choice(self.STREETS)} {rng.choice(self.SUFFIXES)}",
            city=self.CITIES[city_index],
            state="TX",
            zip=self.ZIPS[city_index],
            beds=beds,
            baths=baths,
            garage=rng.randint(0, 3),
            year_built=subject.year_built + rng.randint(-30, 20),
            sqft=sqft,
            subdivision=neighbourhood if in_neighbourhood else rng.choice(self.OTHER_SUBDIVISIONS),
            market=self.COUNTIES[city_index % len(self.COUNTIES)],
            mls_number=f"{rng.randint(1000000, 9999999)}",
            price_listed=round(price * rng.uniform(1.0, 1.08)),
            price_sold=price,
            date_sold=(self.as_of - timedelta(days=days_ago)).isoformat(),
            days_on_market=rng.randint(1, 120),
            price_per_sqft=round(price / sqft, 2),
            latitude=round(subject.latitude + rng.uniform(-0.05, 0.05), 6),
            longitude=round(subject.longitude + rng.uniform(-0.05, 0.05), 6),
            distance_miles=round(rng.uniform(0.1, 5.0), 2),
        )


def _within(value: float, low: Optional[float], high: Optional[float]) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True
