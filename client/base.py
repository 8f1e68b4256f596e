"""
Base comp service interface.
"""

from abc import ABC, abstractmethod
from typing import List

from core.comp_sync.models import (
    CompGroupSnapshot,
    CompType,
    Evaluation,
    FilterCriteria,
    SearchTypeOption,
)


class BaseCompService(ABC):
    """
    Abstract remote evaluation service consumed by the sync engine.

    Implementations must honour asyncio task cancellation: a cancelled call
    aborts its transport and produces no observable side effect. Failures
    are raised as ``core.comp_sync.errors.CompServiceError`` subclasses.
    """

    @abstractmethod
    async def get_evaluation(self, property_id: str, evaluation_id: str) -> Evaluation:
        """
        Fetch an evaluation with both comp groups.

        Args:
            property_id: Owning property.
            evaluation_id: Evaluation to load.

        Returns:
            The Evaluation.
        """
        pass

    @abstractmethod
    async def get_search_types(
        self, property_id: str, evaluation_id: str
    ) -> List[SearchTypeOption]:
        """List the search-locality modes available for an evaluation."""
        pass

    @abstractmethod
    async def search_comps(
        self,
        property_id: str,
        evaluation_id: str,
        comp_type: CompType,
        criteria: FilterCriteria,
    ) -> CompGroupSnapshot:
        """
        Run a comp search and persist ``criteria`` on the evaluation.

        Returns:
            The comp group snapshot, including the criteria actually applied.
        """
        pass

    @abstractmethod
    async def set_comp_inclusion(
        self,
        property_id: str,
        evaluation_id: str,
        comp_type: CompType,
        comp_id: str,
        include: bool,
    ) -> CompGroupSnapshot:
        """
        Include or exclude one comp from the group's calculations.

        Returns:
            The full authoritative comp group after the change.
        """
        pass
