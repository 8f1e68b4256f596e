"""
Comp Sync - Core Logic

The synchronization engine for an evaluation's sale and rent comp groups
lives in ``core.comp_sync``.
"""

from .comp_sync import (
    CompType,
    FilterCriteria,
    Comp,
    CompGroupSnapshot,
    Evaluation,
    CompSection,
)

__all__ = [
    "CompType",
    "FilterCriteria",
    "Comp",
    "CompGroupSnapshot",
    "Evaluation",
    "CompSection",
]
