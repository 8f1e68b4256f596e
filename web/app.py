"""
FastAPI development stub of the remote evaluation API.

Serves the comp endpoints from an InMemoryCompService so the sync engine
and the CLI can be exercised without the production backend.
"""

import os
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from client.memory import InMemoryCompService, Subject
from core.comp_sync.errors import AuthorizationError, CompServiceError, ServerError
from core.comp_sync.models import CRITERIA_WIRE_NAMES, CompType, FilterCriteria
from utils.config import Config
from utils.logging_config import configure_logging, get_logger

logger = get_logger(__name__)

API_PREFIX = "/v1"
DEMO_PROPERTY_ID = "demo-property"
DEMO_EVALUATION_ID = "demo-evaluation"


# =============================================================================
# Request models
# =============================================================================

class SeedEvaluationRequest(BaseModel):
    """Create an evaluation with generated comps."""
    evaluation_id: str
    subdivision: str = "OAK HOLLOW PHASE 2"
    county: str = "Travis"
    subject_sqft: int = 2000
    subject_year_built: int = 2000


class FailNextRequest(BaseModel):
    """Make the next API call fail (for exercising error banners)."""
    status_code: int = 500
    message: str = "Comp search failed"


def criteria_from_headers(request: Request) -> FilterCriteria:
    """Decode criteria sent as request headers (lookups are case-insensitive)."""
    data = {
        wire: request.headers[wire]
        for wire in CRITERIA_WIRE_NAMES.values()
        if wire in request.headers
    }
    return FilterCriteria.from_dict(data)


def parse_comp_type(segment: str) -> CompType:
    comp_type = CompType.from_string(segment[: -len("comps")] if segment.endswith("comps") else "")
    if comp_type is None:
        raise ServerError(f"Unknown comp group: {segment}", status_code=404)
    return comp_type


# =============================================================================
# Application
# =============================================================================

def create_app(
    service: Optional[InMemoryCompService] = None,
    session_key: Optional[str] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    """
    Create and configure the stub application.

    Args:
        service: Backing service (default: a seeded InMemoryCompService
            with one demo evaluation).
        session_key: Required ``sessionKey`` header value; empty disables
            the check (default: ``COMP_SESSION_KEY``).
        config: Configuration (default: from environment).
    """
    config = config or Config.load()
    if session_key is None:
        session_key = config.session_key
    if service is None:
        service = InMemoryCompService(
            seed=int(os.getenv("STUB_SEED", "42")),
            latency=float(os.getenv("STUB_LATENCY_SECONDS", "0")),
        )
        service.seed_evaluation(DEMO_PROPERTY_ID, DEMO_EVALUATION_ID)

    app = FastAPI(
        title="Comp Sync Stub API",
        description="Development stand-in for the remote evaluation API",
        version="1.0.0",
        debug=config.debug,
    )
    app.state.service = service

    @app.get("/health", include_in_schema=False)
    def health():
        """Health endpoint. No dependencies, no IO."""
        return {"status": "healthy"}

    @app.exception_handler(CompServiceError)
    async def comp_service_error_handler(request: Request, exc: CompServiceError):
        status = exc.status_code or (401 if isinstance(exc, AuthorizationError) else 500)
        return JSONResponse(status_code=status, content={"message": exc.message})

    @app.exception_handler(ValueError)
    async def validation_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"message": str(exc)})

    def require_session(request: Request) -> None:
        if session_key and request.headers.get("sessionKey") != session_key:
            raise AuthorizationError("Unauthorized", status_code=401)

    router = APIRouter(prefix=API_PREFIX, dependencies=[Depends(require_session)])
    base = "/properties/{property_id}/evaluations/{evaluation_id}"

    @router.get(base)
    async def get_evaluation(property_id: str, evaluation_id: str):
        evaluation = await service.get_evaluation(property_id, evaluation_id)
        return evaluation.to_dict()

    @router.get(base + "/searchTypes")
    async def get_search_types(property_id: str, evaluation_id: str):
        options = await service.get_search_types(property_id, evaluation_id)
        return [
            {"type": o.type, "defaultSearchTerm": o.default_search_term, "description": o.description}
            for o in options
        ]

    @router.put(base + "/{comp_group}")
    async def search_comps(property_id: str, evaluation_id: str, comp_group: str, request: Request):
        comp_type = parse_comp_type(comp_group)
        criteria = criteria_from_headers(request)
        await service.search_comps(property_id, evaluation_id, comp_type, criteria)
        return service.evaluation(property_id, evaluation_id).to_dict()

    @router.put(base + "/{comp_group}/{comp_id}/include")
    async def set_comp_inclusion(
        property_id: str, evaluation_id: str, comp_group: str, comp_id: str, request: Request
    ):
        comp_type = parse_comp_type(comp_group)
        include = request.headers.get("include", "").strip().lower() == "true"
        await service.set_comp_inclusion(property_id, evaluation_id, comp_type, comp_id, include)
        return service.evaluation(property_id, evaluation_id).to_dict()

    @router.post("/properties/{property_id}/evaluations")
    async def seed_evaluation(property_id: str, body: SeedEvaluationRequest):
        evaluation = service.seed_evaluation(
            property_id,
            body.evaluation_id,
            subdivision=body.subdivision,
            county=body.county,
            subject=Subject(sqft=body.subject_sqft, year_built=body.subject_year_built),
        )
        logger.info("Seeded evaluation %s/%s", property_id, body.evaluation_id)
        return evaluation.to_dict()

    @router.post("/_debug/fail-next")
    async def fail_next(body: FailNextRequest):
        if body.status_code == 401:
            error: CompServiceError = AuthorizationError(body.message, status_code=401)
        else:
            error = ServerError(body.message, status_code=body.status_code)
        service.fail_next(error)
        return {"queued": True}

    app.include_router(router)
    return app


def build_default_app() -> FastAPI:
    config = Config.load()
    configure_logging(config.log_level)
    return create_app(config=config)


# Create app instance for uvicorn
app = build_default_app()
