"""HTTP client for the transaction API under test

Every call is attempted exactly once. Timeouts, network errors, non-2xx/3xx
statuses and unparsable bodies never raise: they are recorded as failed
outcomes and surfaced on the returned ApiResponse.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from txload.exceptions import RequestFailedError
from txload.metrics.collector import HTTP_REQ_DURATION, HTTP_REQ_FAILED, HTTP_REQS, MetricsCollector
from txload.models.transaction import ErrorDetail, TransactionRequest

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

TransactionId = Union[int, str]

JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass
class ApiResponse:
    """Outcome of one HTTP call"""
    name: str
    status_code: Optional[int]
    duration_ms: float
    body: Any = None
    error: Optional[RequestFailedError] = None

    @property
    def ok(self) -> bool:
        """A response arrived with a status in 200-399"""
        return self.status_code is not None and 200 <= self.status_code < 400

    def parse(self, model: Type[M]) -> Optional[M]:
        """Validate the JSON body against a schema; None if absent or invalid"""
        if self.body is None:
            return None
        try:
            return model.model_validate(self.body)
        except ValidationError as e:
            logger.debug(f"[API] {self.name} body does not match {model.__name__}: {e.error_count()} errors")
            return None


class TransactionApiClient:
    """
    Async client for the four transaction endpoints.

    Example:
        async with TransactionApiClient("http://localhost:8080", collector) as client:
            created = await client.create_transaction(payload)
    """

    def __init__(
        self,
        base_url: str,
        collector: MetricsCollector,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            base_url: Target API root, e.g. http://localhost:80
            collector: Receives http_req_duration / http_req_failed / http_reqs
            timeout: Global per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._collector = collector
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "TransactionApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def create_transaction(self, payload: TransactionRequest) -> ApiResponse:
        """POST /transactions, expected 201 with an id"""
        return await self._request(
            "create_transaction", "POST", "/transactions",
            json=payload.to_json(), headers=JSON_HEADERS
        )

    async def get_transaction(self, transaction_id: TransactionId) -> ApiResponse:
        """GET /transactions/{id}, expected 200"""
        return await self._request("get_transaction", "GET", f"/transactions/{transaction_id}")

    async def update_transaction(self, transaction_id: TransactionId, payload: TransactionRequest) -> ApiResponse:
        """PUT /transactions/{id}, expected 200"""
        return await self._request(
            "update_transaction", "PUT", f"/transactions/{transaction_id}",
            json=payload.to_json(), headers=JSON_HEADERS
        )

    async def list_transactions(self, page: int = 0, size: int = 10) -> ApiResponse:
        """GET /transactions?page=&size=, expected 200 with content"""
        return await self._request(
            "list_transactions", "GET", "/transactions",
            params={"page": page, "size": size}
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _request(self, name: str, method: str, path: str, **kwargs: Any) -> ApiResponse:
        started = time.perf_counter()
        response: Optional[httpx.Response] = None
        error: Optional[RequestFailedError] = None
        error_kind = ""

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            error_kind = "timeout"
            error = RequestFailedError(f"{method} {path} timed out", request_name=name, cause=e)
        except httpx.HTTPError as e:
            error_kind = type(e).__name__
            error = RequestFailedError(f"{method} {path} failed: {e}", request_name=name, cause=e)

        duration_ms = (time.perf_counter() - started) * 1000
        status_code = response.status_code if response is not None else None
        body = None

        if response is not None:
            try:
                body = response.json()
            except ValueError:
                body = None

            if not 200 <= status_code < 400:
                error_kind = f"status_{status_code}"
                detail = None
                if isinstance(body, dict):
                    try:
                        detail = ErrorDetail.model_validate(body)
                    except ValidationError:
                        detail = None
                error = RequestFailedError(
                    f"{method} {path} returned {status_code}"
                    + (f" ({detail.code})" if detail and detail.code else ""),
                    request_name=name,
                    status_code=status_code
                )

        result = ApiResponse(name=name, status_code=status_code, duration_ms=duration_ms, body=body, error=error)
        self._record(result, method, error_kind)
        return result

    def _record(self, result: ApiResponse, method: str, error_kind: str) -> None:
        status = str(result.status_code) if result.status_code is not None else "0"
        tags = {"name": result.name, "method": method, "status": status}

        self._collector.add(HTTP_REQ_DURATION, result.duration_ms, **tags)
        self._collector.add(HTTP_REQS, 1.0, **tags)
        if result.ok:
            self._collector.add(HTTP_REQ_FAILED, False, **tags)
        else:
            self._collector.add(HTTP_REQ_FAILED, True, error=error_kind, **tags)
