"""
Comp Sync Engine v1.0

Keeps the locally editable sale and rent comp lists of an evaluation
consistent with the remote comp search service:

1. Filter State Store (working criteria + authoritative snapshot)
2. Debounce Scheduler (quiet period before a search)
3. Request Coordinator (one current search, stale results dropped)
4. Reconciliation Merger (local include flags survive a merge)
5. Optimistic Toggle Controller (flip now, roll back on failure)
"""

from .models import (
    CompType,
    SearchTypeOption,
    FilterCriteria,
    Comp,
    CompTrend,
    CompGroupSnapshot,
    Evaluation,
)
from .errors import (
    ErrorKind,
    CompServiceError,
    TransportError,
    AuthorizationError,
    ServerError,
    ErrorBanner,
    BannerController,
    classify_exception,
)
from .filter_store import FilterStateStore
from .debounce import DebounceScheduler
from .coordinator import (
    Success,
    Cancelled,
    Failure,
    SearchOutcome,
    PendingRequest,
    RequestCoordinator,
)
from .reconcile import ReconciliationMerger
from .toggle import ToggleState, ToggleAction, OptimisticToggleController
from .search_types import (
    strip_subdivision_suffix,
    default_search_type,
    search_type_change,
    summarize_criteria,
)
from .section import CompSection

__all__ = [
    # Models
    "CompType",
    "SearchTypeOption",
    "FilterCriteria",
    "Comp",
    "CompTrend",
    "CompGroupSnapshot",
    "Evaluation",
    # Errors
    "ErrorKind",
    "CompServiceError",
    "TransportError",
    "AuthorizationError",
    "ServerError",
    "ErrorBanner",
    "BannerController",
    "classify_exception",
    # Components
    "FilterStateStore",
    "DebounceScheduler",
    "Success",
    "Cancelled",
    "Failure",
    "SearchOutcome",
    "PendingRequest",
    "RequestCoordinator",
    "ReconciliationMerger",
    "ToggleState",
    "ToggleAction",
    "OptimisticToggleController",
    # Search types
    "strip_subdivision_suffix",
    "default_search_type",
    "search_type_change",
    "summarize_criteria",
    # Glue
    "CompSection",
]
