import aiohttp
import asyncio
import json
import logging
from typing import AsyncIterator, Dict, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ref_client.domain.exceptions import BackendUnavailableError, StatusCode

logger = logging.getLogger(__name__)

USER_AGENT = "ref-service-client"

# Fallback when the error body does not name a code itself.
HTTP_STATUS_CODES = {
    400: StatusCode.INVALID_ARGUMENT,
    404: StatusCode.NOT_FOUND,
    409: StatusCode.ALREADY_EXISTS,
    412: StatusCode.FAILED_PRECONDITION,
    503: StatusCode.UNAVAILABLE,
    504: StatusCode.DEADLINE_EXCEEDED,
}

R = TypeVar("R", bound=BaseModel)


class TransportInvoker(Protocol):
    """
    Performs one RPC against the backend serving ``storage``.

    Failures of any kind surface as BackendUnavailableError carrying a StatusCode.
    """

    async def unary(
        self,
        storage: str,
        service: str,
        method: str,
        request: BaseModel,
        response_type: Type[R],
        *,
        timeout: Optional[float] = None,
    ) -> R:
        ...

    def stream(
        self,
        storage: str,
        service: str,
        method: str,
        request: BaseModel,
        response_type: Type[R],
        *,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[R]:
        ...


class HttpTransport:
    """
    TransportInvoker over JSON/HTTP using a caller-owned aiohttp session.

    Unary calls answer with one JSON object; streaming calls answer with
    newline-delimited JSON, one chunk per line. No retries are attempted.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        addresses: Dict[str, str],
        token: Optional[str] = None,
        default_timeout: Optional[float] = None,
    ):
        self.session = session
        self.addresses = {storage: url.rstrip("/") for storage, url in addresses.items()}
        self.default_timeout = default_timeout
        self.headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def build_url(self, storage: str, service: str, method: str) -> str:
        address = self.addresses.get(storage)
        if address is None:
            raise BackendUnavailableError(
                StatusCode.NOT_FOUND, f"No backend address configured for storage '{storage}'."
            )
        return f"{address}/{service}/{method}"

    def _client_timeout(self, timeout: Optional[float]) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=timeout if timeout is not None else self.default_timeout)

    async def unary(self, storage, service, method, request, response_type, *, timeout=None):
        url = self.build_url(storage, service, method)
        try:
            async with self.session.post(
                url,
                json=request.model_dump(mode="json"),
                headers=self.headers,
                timeout=self._client_timeout(timeout),
            ) as response:
                await self._raise_for_status(response, method)
                body = await response.read()
        except asyncio.TimeoutError as e:
            logger.warning(f"{method} timed out after {timeout or self.default_timeout}s")
            raise BackendUnavailableError(StatusCode.DEADLINE_EXCEEDED, f"{method} timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"{method} failed: {e}")
            raise BackendUnavailableError(StatusCode.UNAVAILABLE, str(e)) from e

        return self._decode(response_type, body, method)

    async def stream(self, storage, service, method, request, response_type, *, timeout=None):
        """Yields response chunks as their lines arrive; the connection is released once exhausted."""
        url = self.build_url(storage, service, method)
        try:
            async with self.session.post(
                url,
                json=request.model_dump(mode="json"),
                headers=self.headers,
                timeout=self._client_timeout(timeout),
            ) as response:
                await self._raise_for_status(response, method)
                async for line in response.content:
                    line = line.strip()
                    if not line:
                        continue
                    yield self._decode(response_type, line, method)
        except asyncio.TimeoutError as e:
            logger.warning(f"{method} stream timed out after {timeout or self.default_timeout}s")
            raise BackendUnavailableError(StatusCode.DEADLINE_EXCEEDED, f"{method} timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"{method} stream failed: {e}")
            raise BackendUnavailableError(StatusCode.UNAVAILABLE, str(e)) from e

    @staticmethod
    async def _raise_for_status(response, method: str) -> None:
        if 200 <= response.status < 300:
            return

        code = HTTP_STATUS_CODES.get(response.status, StatusCode.INTERNAL)
        details = f"HTTP {response.status}"
        body = await response.read()
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            try:
                code = StatusCode(payload.get("code", code))
            except ValueError:
                code = StatusCode.UNKNOWN
            details = payload.get("message", details)

        logger.warning(f"{method} returned HTTP {response.status} ({code.value}): {details}")
        raise BackendUnavailableError(code, details)

    @staticmethod
    def _decode(response_type: Type[R], body: bytes, method: str) -> R:
        try:
            return response_type.model_validate_json(body)
        except ValidationError as e:
            raise BackendUnavailableError(
                StatusCode.INTERNAL, f"Malformed {method} response: {e}"
            ) from e
