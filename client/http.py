"""
HTTP comp service.

Talks to the remote evaluation API with an ``httpx.AsyncClient``. Filter
criteria travel as request headers; every comp endpoint answers with the
whole evaluation, from which the relevant comp group is extracted.
"""

from typing import Any, Dict, List, Mapping, Optional

import httpx

from core.comp_sync.errors import (
    AuthorizationError,
    ServerError,
    TransportError,
)
from core.comp_sync.models import (
    CompGroupSnapshot,
    CompType,
    Evaluation,
    FilterCriteria,
    SearchTypeOption,
)
from utils.config import Config
from utils.logging_config import get_logger

from .base import BaseCompService

logger = get_logger(__name__)

SESSION_HEADER = "sessionKey"


def criteria_headers(criteria: FilterCriteria) -> Dict[str, str]:
    """
    Encode criteria as request headers.

    Unset values become ``''`` and booleans ``true``/``false``.
    """
    headers = {}
    for name, value in criteria.to_dict().items():
        if value is None:
            headers[name] = ""
        elif isinstance(value, bool):
            headers[name] = "true" if value else "false"
        else:
            headers[name] = str(value)
    return headers


class HttpCompService(BaseCompService):
    """
    Remote evaluation API client.

    Cancelling the awaiting task aborts the underlying HTTP request.
    """

    def __init__(
        self,
        base_url: str,
        session_key: str = "",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: API root, e.g. ``https://api.example.com/v1``.
            session_key: Sent as the ``sessionKey`` header when set.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (e.g. ``httpx.ASGITransport``).
        """
        self.base_url = base_url.rstrip("/") + "/"
        self.session_key = session_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> "HttpCompService":
        return cls(
            base_url=config.api_base_url,
            session_key=config.session_key,
            timeout=config.request_timeout,
            **kwargs,
        )

    async def __aenter__(self) -> "HttpCompService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.session_key:
                headers[SESSION_HEADER] = self.session_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    # ------------------------------------------------------------------
    # BaseCompService
    # ------------------------------------------------------------------

    async def get_evaluation(self, property_id: str, evaluation_id: str) -> Evaluation:
        data = await self._request("GET", self._evaluation_path(property_id, evaluation_id))
        return Evaluation.from_dict(data)

    async def get_search_types(self, property_id: str, evaluation_id: str) -> List[SearchTypeOption]:
        path = self._evaluation_path(property_id, evaluation_id) + "/searchTypes"
        data = await self._request("GET", path)
        if isinstance(data, Mapping):
            data = data.get("searchTypes") or []
        return [SearchTypeOption.from_dict(item) for item in data]

    async def search_comps(
        self,
        property_id: str,
        evaluation_id: str,
        comp_type: CompType,
        criteria: FilterCriteria,
    ) -> CompGroupSnapshot:
        path = f"{self._evaluation_path(property_id, evaluation_id)}/{comp_type.url_segment}"
        data = await self._request("PUT", path, headers=criteria_headers(criteria))
        return self._extract_group(data, comp_type)

    async def set_comp_inclusion(
        self,
        property_id: str,
        evaluation_id: str,
        comp_type: CompType,
        comp_id: str,
        include: bool,
    ) -> CompGroupSnapshot:
        path = (
            f"{self._evaluation_path(property_id, evaluation_id)}"
            f"/{comp_type.url_segment}/{comp_id}/include"
        )
        data = await self._request(
            "PUT", path, headers={"include": "true" if include else "false"}
        )
        return self._extract_group(data, comp_type)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _evaluation_path(property_id: str, evaluation_id: str) -> str:
        return f"properties/{property_id}/evaluations/{evaluation_id}"

    @staticmethod
    def _extract_group(data: Any, comp_type: CompType) -> CompGroupSnapshot:
        if not isinstance(data, Mapping) or not data.get(comp_type.group_key):
            raise ServerError(f"Response did not include the {comp_type.value} comp group")
        try:
            return CompGroupSnapshot.from_dict(comp_type, data[comp_type.group_key])
        except (TypeError, ValueError) as e:
            raise ServerError(f"Malformed {comp_type.value} comp group: {e}") from e

    async def _request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        client = self._ensure_client()
        logger.debug("%s %s", method, path)
        try:
            response = await client.request(method, path, headers=headers)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransportError(str(e) or type(e).__name__) from e

        if response.status_code == 401:
            raise AuthorizationError("Session expired", status_code=401)
        if not response.is_success:
            raise ServerError(_error_message(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ServerError("Response was not valid JSON", status_code=response.status_code) from e


def _error_message(response: httpx.Response) -> str:
    """``message`` or ``error`` field of an error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, Mapping):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return ""
