"""
Data models for the comp sync engine.

Defines the comp group snapshot exchanged with the remote evaluation API,
the filter criteria value object and the wire (camelCase) mapping for both.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class CompType(Enum):
    """
    Comp group type.

    Each evaluation owns exactly one group of each type.
    """
    SALE = "sale"
    RENT = "rent"

    @property
    def group_key(self) -> str:
        """Evaluation field holding this group (e.g. 'saleCompGroup')."""
        return f"{self.value}CompGroup"

    @property
    def inputs_key(self) -> str:
        return f"{self.value}CompInputs"

    @property
    def initial_inputs_key(self) -> str:
        return f"initial{self.value.capitalize()}CompInputs"

    @property
    def records_key(self) -> str:
        return f"{self.value}Comps"

    @property
    def average_price_key(self) -> str:
        return "averageSalePrice" if self is CompType.SALE else "averageRentPrice"

    @property
    def url_segment(self) -> str:
        """Path segment of the comp endpoints (e.g. 'salecomps')."""
        return f"{self.value}comps"

    @classmethod
    def from_string(cls, value: str) -> Optional["CompType"]:
        """Convert string to CompType, case-insensitive."""
        normalised = value.lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None


@dataclass(frozen=True)
class SearchTypeOption:
    """A search-locality mode offered by the server (subdivision, radius, ...)."""
    type: str
    default_search_term: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SearchTypeOption":
        name = data.get("type") or data.get("name") or ""
        return cls(
            type=str(name),
            default_search_term=str(data.get("defaultSearchTerm") or ""),
            description=str(data.get("description") or name),
        )


# Python field name -> wire field name
CRITERIA_WIRE_NAMES: Dict[str, str] = {
    "search_type": "searchType",
    "search_term": "searchTerm",
    "sqft_plus_minus": "sqftPlusMinus",
    "beds_min": "bedsMin",
    "beds_max": "bedsMax",
    "baths_min": "bathsMin",
    "baths_max": "bathsMax",
    "garage_min": "garageMin",
    "garage_max": "garageMax",
    "year_built_plus_minus": "yearBuiltPlusMinus",
    "months_closed": "monthsClosed",
    "confine_to_county": "confineToCounty",
    "confine_to_zip": "confineToZip",
    "ignore_parameters_except_months_closed": "ignoreParametersExceptMonthsClosed",
}

NUMERIC_CRITERIA_FIELDS: Tuple[str, ...] = (
    "sqft_plus_minus",
    "beds_min",
    "beds_max",
    "baths_min",
    "baths_max",
    "garage_min",
    "garage_max",
    "year_built_plus_minus",
    "months_closed",
)

# Fields ignored by the server while broad search is on. Kept locally.
PRECISION_CRITERIA_FIELDS: Tuple[str, ...] = tuple(
    name for name in NUMERIC_CRITERIA_FIELDS if name != "months_closed"
) + ("confine_to_county", "confine_to_zip")

RANGE_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("beds_min", "beds_max"),
    ("baths_min", "baths_max"),
    ("garage_min", "garage_max"),
)


@dataclass(frozen=True)
class FilterCriteria:
    """
    Comp search criteria for one comp group.

    Immutable value object; edits produce a new instance through
    ``updated()`` which re-runs validation. The broad-search flag does not
    clear precision fields so that switching it off restores them.
    """
    search_type: str = "subdivision"
    search_term: str = ""
    sqft_plus_minus: Optional[int] = None
    beds_min: Optional[int] = None
    beds_max: Optional[int] = None
    baths_min: Optional[float] = None
    baths_max: Optional[float] = None
    garage_min: Optional[int] = None
    garage_max: Optional[int] = None
    year_built_plus_minus: Optional[int] = None
    months_closed: Optional[int] = None
    confine_to_county: str = ""
    confine_to_zip: str = ""
    ignore_parameters_except_months_closed: bool = False

    def __post_init__(self):
        """Validate criteria after initialization."""
        for name in NUMERIC_CRITERIA_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number")
            if value < 0:
                raise ValueError(f"{name} must be non-negative")
            if isinstance(value, float) and value.is_integer():
                # 6.0 and 6 must share a fingerprint
                object.__setattr__(self, name, int(value))
        for low_name, high_name in RANGE_PAIRS:
            low, high = getattr(self, low_name), getattr(self, high_name)
            if low is not None and high is not None and high < low:
                raise ValueError(f"{high_name} must be >= {low_name}")

    @property
    def is_broad_search(self) -> bool:
        return self.ignore_parameters_except_months_closed

    def updated(self, **changes: Any) -> "FilterCriteria":
        """Return a copy with ``changes`` applied (unknown names raise)."""
        unknown = set(changes) - set(CRITERIA_WIRE_NAMES)
        if unknown:
            raise ValueError(f"Unknown filter fields: {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def effective(self) -> "FilterCriteria":
        """Criteria as the server applies them (precision fields dropped in broad mode)."""
        if not self.is_broad_search:
            return self
        cleared = {
            name: ("" if isinstance(getattr(self, name), str) else None)
            for name in PRECISION_CRITERIA_FIELDS
        }
        return replace(self, **cleared)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary (camelCase)."""
        return {CRITERIA_WIRE_NAMES[k]: v for k, v in asdict(self).items()}

    def fingerprint(self) -> str:
        """Stable serialization used to detect redundant searches."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FilterCriteria":
        """
        Create from a wire dictionary.

        Unknown keys are ignored. Zero or empty numeric values are treated as
        unset, and legacy boolean confinement values become empty strings.
        """
        if not data:
            return cls()
        values: Dict[str, Any] = {}
        for name, wire in CRITERIA_WIRE_NAMES.items():
            if wire not in data:
                continue
            raw = data[wire]
            if name in NUMERIC_CRITERIA_FIELDS:
                values[name] = _parse_number(raw)
            elif name == "ignore_parameters_except_months_closed":
                values[name] = _parse_bool(raw)
            elif isinstance(raw, bool) or raw is None:
                values[name] = ""
            else:
                values[name] = str(raw)
        return cls(**values)


def _parse_number(raw: Any) -> Optional[float]:
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    if number <= 0:
        return None
    return int(number) if number.is_integer() else number


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() == "true"
    return bool(raw)


@dataclass(frozen=True)
class Comp:
    """
    One comparable property.

    Everything except ``include`` is descriptive and replaced wholesale by
    each successful search.
    """
    id: str
    include: bool = True
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    beds: int = 0
    baths: float = 0
    garage: int = 0
    year_built: int = 0
    sqft: int = 0
    subdivision: str = ""
    market: str = ""
    mls_number: str = ""
    price_listed: float = 0
    price_sold: float = 0  # Monthly rent for rent comps
    date_sold: str = ""
    days_on_market: int = 0
    price_per_sqft: float = 0
    photo_urls: Tuple[str, ...] = ()
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_miles: Optional[float] = None

    def with_include(self, include: bool) -> "Comp":
        return replace(self, include=include)

    @property
    def full_address(self) -> str:
        """Construct full address string."""
        locality = ", ".join(p for p in (self.city, self.state) if p)
        parts = [p for p in (self.street, locality, self.zip) if p]
        return ", ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary."""
        return {
            "id": self.id,
            "include": self.include,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "beds": self.beds,
            "baths": self.baths,
            "garage": self.garage,
            "yearBuilt": self.year_built,
            "sqft": self.sqft,
            "subdivision": self.subdivision,
            "market": self.market,
            "mlsNumber": self.mls_number,
            "priceListed": self.price_listed,
            "priceSold": self.price_sold,
            "dateSold": self.date_sold,
            "daysOnMarket": self.days_on_market,
            "pricePerSqft": self.price_per_sqft,
            "photoURLs": list(self.photo_urls),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "distanceMiles": self.distance_miles,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Comp":
        """Create from wire dictionary."""
        if not data.get("id"):
            raise ValueError("comp id is required")
        return cls(
            id=str(data["id"]),
            include=bool(data.get("include", True)),
            street=data.get("street") or "",
            city=data.get("city") or "",
            state=data.get("state") or "",
            zip=data.get("zip") or "",
            beds=data.get("beds") or 0,
            baths=data.get("baths") or 0,
            garage=data.get("garage") or 0,
            year_built=data.get("yearBuilt") or 0,
            sqft=data.get("sqft") or 0,
            subdivision=data.get("subdivision") or "",
            market=data.get("market") or "",
            mls_number=data.get("mlsNumber") or "",
            price_listed=data.get("priceListed") or 0,
            price_sold=data.get("priceSold") or 0,
            date_sold=data.get("dateSold") or "",
            days_on_market=data.get("daysOnMarket") or 0,
            price_per_sqft=data.get("pricePerSqft") or 0,
            photo_urls=tuple(data.get("photoURLs") or ()),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            distance_miles=data.get("distanceMiles"),
        )


@dataclass(frozen=True)
class CompTrend:
    """Average prices over one trailing window (e.g. 'Last 6 months')."""
    description: str
    avg_sale_price: float = 0
    avg_price_per_sqft: float = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CompTrend":
        return cls(
            description=data.get("description") or "",
            avg_sale_price=data.get("avgSalePrice") or 0,
            avg_price_per_sqft=data.get("avgPricePerSqFt") or 0,
        )


@dataclass(frozen=True)
class CompGroupSnapshot:
    """
    Full replaceable state of one comp group.

    ``filter_criteria`` is the criteria the server actually applied;
    ``aggregate_value`` is the server-computed value (estimated sale value
    or monthly rent).
    """
    comp_type: CompType
    filter_criteria: FilterCriteria
    records: Tuple[Comp, ...] = ()
    aggregate_value: float = 0
    average_price: float = 0
    average_price_per_sqft: float = 0
    initial_filter_criteria: Optional[FilterCriteria] = None
    trends: Tuple[CompTrend, ...] = ()
    counties: Tuple[str, ...] = ()
    zips: Tuple[str, ...] = ()

    @property
    def included_records(self) -> List[Comp]:
        return [comp for comp in self.records if comp.include]

    @property
    def record_ids(self) -> List[str]:
        return [comp.id for comp in self.records]

    def find(self, comp_id: str) -> Optional[Comp]:
        for comp in self.records:
            if comp.id == comp_id:
                return comp
        return None

    def include_map(self) -> Dict[str, bool]:
        return {comp.id: comp.include for comp in self.records}

    def with_include(self, comp_id: str, include: bool) -> "CompGroupSnapshot":
        """Copy with one record's inclusion flag replaced."""
        if self.find(comp_id) is None:
            raise KeyError(comp_id)
        records = tuple(
            comp.with_include(include) if comp.id == comp_id else comp
            for comp in self.records
        )
        return replace(self, records=records)

    def with_criteria(self, criteria: FilterCriteria) -> "CompGroupSnapshot":
        return replace(self, filter_criteria=criteria)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire comp group dictionary."""
        ct = self.comp_type
        return {
            ct.inputs_key: self.filter_criteria.to_dict(),
            ct.initial_inputs_key: (
                self.initial_filter_criteria.to_dict()
                if self.initial_filter_criteria else None
            ),
            ct.records_key: [comp.to_dict() for comp in self.records],
            "calculatedValue": self.aggregate_value,
            ct.average_price_key: self.average_price,
            "averagePricePerSqft": self.average_price_per_sqft,
            "trends": [
                {
                    "description": t.description,
                    "avgSalePrice": t.avg_sale_price,
                    "avgPricePerSqFt": t.avg_price_per_sqft,
                }
                for t in self.trends
            ],
            "counties": list(self.counties),
            "zips": list(self.zips),
        }

    @classmethod
    def from_dict(cls, comp_type: CompType, data: Optional[Mapping[str, Any]]) -> "CompGroupSnapshot":
        """Create from a wire comp group dictionary (None gives an empty group)."""
        data = data or {}
        initial = data.get(comp_type.initial_inputs_key)
        return cls(
            comp_type=comp_type,
            filter_criteria=FilterCriteria.from_dict(data.get(comp_type.inputs_key)),
            records=tuple(Comp.from_dict(c) for c in data.get(comp_type.records_key) or ()),
            aggregate_value=data.get("calculatedValue") or 0,
            average_price=data.get(comp_type.average_price_key) or 0,
            average_price_per_sqft=data.get("averagePricePerSqft") or 0,
            initial_filter_criteria=FilterCriteria.from_dict(initial) if initial else None,
            trends=tuple(CompTrend.from_dict(t) for t in data.get("trends") or ()),
            counties=tuple(data.get("counties") or ()),
            zips=tuple(data.get("zips") or ()),
        )


@dataclass
class Evaluation:
    """
    The parent evaluation of both comp groups.

    Only the fields the sync engine reads are modelled.
    """
    id: str
    property_id: str
    subdivision: str = ""
    county: str = ""
    sale_comp_group: Optional[CompGroupSnapshot] = None
    rent_comp_group: Optional[CompGroupSnapshot] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def comp_group(self, comp_type: CompType) -> CompGroupSnapshot:
        """Group of the given type (empty group if the evaluation has none)."""
        group = self.sale_comp_group if comp_type is CompType.SALE else self.rent_comp_group
        if group is None:
            return CompGroupSnapshot(comp_type=comp_type, filter_criteria=FilterCriteria())
        return group

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "propertyId": self.property_id,
            "subdivision": self.subdivision,
            "county": self.county,
            "saleCompGroup": self.sale_comp_group.to_dict() if self.sale_comp_group else None,
            "rentCompGroup": self.rent_comp_group.to_dict() if self.rent_comp_group else None,
        })
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Evaluation":
        known = {"id", "propertyId", "subdivision", "county", "saleCompGroup", "rentCompGroup"}
        sale = data.get(CompType.SALE.group_key)
        rent = data.get(CompType.RENT.group_key)
        return cls(
            id=str(data.get("id") or ""),
            property_id=str(data.get("propertyId") or ""),
            subdivision=data.get("subdivision") or "",
            county=data.get("county") or "",
            sale_comp_group=CompGroupSnapshot.from_dict(CompType.SALE, sale) if sale else None,
            rent_comp_group=CompGroupSnapshot.from_dict(CompType.RENT, rent) if rent else None,
            extra={k: v for k, v in data.items() if k not in known},
        )
