"""
Search-type and filter helpers shared by the sale and rent comp sections.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from utils.formatting import format_number

from .models import FilterCriteria, SearchTypeOption

SUBDIVISION = "subdivision"
RADIUS = "radius"

SEARCH_TYPE_LABELS = {
    "subdivision": "Subdivision",
    "radius": "Radius",
    "zip": "ZIP",
    "city": "City",
    "county": "County",
}

# Plat qualifiers such as "SEC 2", "PHASE 3A", "REPLAT"
_SUBDIVISION_QUALIFIER = re.compile(
    r"\s+(SEC|SECTION|PHASE|PH|UNIT|BLK|BLOCK|LOT|PT|PART|RESUB|REPLAT|AMEND|AMD|REV|REVISED)"
    r"\s*\d*\s*[A-Z]?\s*$",
    re.IGNORECASE,
)
_TRAILING_NUMBER = re.compile(r"\s+\d+\s*$")


def strip_subdivision_suffix(subdivision: str) -> str:
    """
    Strip plat qualifiers from a subdivision name for a cleaner search term.

    >>> strip_subdivision_suffix("OAK HOLLOW PHASE 2")
    'OAK HOLLOW'
    """
    if not subdivision:
        return ""
    stripped = _SUBDIVISION_QUALIFIER.sub("", subdivision)
    stripped = _TRAILING_NUMBER.sub("", stripped)
    return stripped.strip()


def default_search_type(search_types: Sequence[SearchTypeOption]) -> str:
    """First server-offered type, or subdivision."""
    if search_types and search_types[0].type:
        return search_types[0].type
    return SUBDIVISION


def search_type_change(
    criteria: FilterCriteria,
    new_type: str,
    search_types: Sequence[SearchTypeOption] = (),
    subdivision: str = "",
    default_radius: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Partial criteria update for switching the search-locality mode.

    Switching from radius back to subdivision restores the evaluation's
    subdivision; switching to radius starts from the default radius.
    """
    was_radius = criteria.search_type.lower() == RADIUS
    target = new_type.lower()

    if was_radius and target == SUBDIVISION and subdivision:
        return {"search_type": new_type, "search_term": strip_subdivision_suffix(subdivision)}
    if target == RADIUS:
        radius_term = ""
        if default_radius:
            radius_term = format_number(default_radius)
        else:
            for option in search_types:
                if option.type.lower() == RADIUS:
                    radius_term = option.default_search_term
                    break
        return {"search_type": new_type, "search_term": radius_term}
    return {"search_type": new_type}


def summarize_criteria(criteria: FilterCriteria) -> List[Tuple[str, str]]:
    """
    Read-only (label, value) pairs describing the applied criteria.

    Precision filters are omitted in broad-search mode since the server
    ignores them; the recency window is always shown.
    """
    search_type = criteria.search_type or SUBDIVISION
    label = SEARCH_TYPE_LABELS.get(search_type.lower(), search_type)
    term = criteria.search_term or "-"
    if criteria.search_term and search_type.lower() == RADIUS:
        term = f"{criteria.search_term} mi"
    items = [(label, term)]

    if not criteria.is_broad_search:
        items.extend([
            ("Beds", _range(criteria.beds_min, criteria.beds_max)),
            ("Baths", _range(criteria.baths_min, criteria.baths_max)),
            ("Sqft", f"±{format_number(criteria.sqft_plus_minus)}"),
            ("Year", f"±{format_number(criteria.year_built_plus_minus)}"),
            ("Garage", _range(criteria.garage_min, criteria.garage_max)),
        ])

    items.append(("Last", f"{format_number(criteria.months_closed)} mo"))

    if criteria.confine_to_county.strip():
        items.append(("County", criteria.confine_to_county))
    if criteria.confine_to_zip.strip():
        items.append(("ZIP", criteria.confine_to_zip))
    return items


def _range(low: Optional[float], high: Optional[float]) -> str:
    return f"{format_number(low)}-{format_number(high)}"
