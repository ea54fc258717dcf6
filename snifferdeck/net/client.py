"""
snifferdeck/net/client.py
HTTP client for the Sniffer Control Service.

This is the single choke point for all traffic to the control service. Every
failure, whether transport, status or an unreadable body, leaves this module as
a NetworkFailure so callers handle exactly one exception type.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from snifferdeck.base.config import ApiConfig
from snifferdeck.base.errors import ErrorCode, NetworkFailure
from snifferdeck.data.models import SnifferConfig, SnifferStatus

logger = logging.getLogger(__name__)

_STATUS_LIST = TypeAdapter(List[SnifferStatus])


class SnifferControlClient:
    """
    Thin async wrapper over the control service routes.

    Wraps an httpx.AsyncClient; pass ``underlying_client`` to inject a
    transport (tests mount an in-memory service this way).
    """

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        underlying_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or ApiConfig()
        if underlying_client is not None:
            self.client = underlying_client
        else:
            headers = {}
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"
            self.client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=headers,
                timeout=self.config.timeout,
            )

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Execute one request and raise NetworkFailure unless it returned 2xx.
        """
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"[Client] {method} {path} timed out: {e}")
            raise NetworkFailure(
                ErrorCode.NET_TIMEOUT,
                f"{method} {path} timed out",
                details={"method": method, "path": path},
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"[Client] {method} {path} failed: {e}")
            raise NetworkFailure(
                ErrorCode.NET_UNREACHABLE,
                f"{method} {path} failed: {e}",
                details={"method": method, "path": path},
            ) from e

        if response.is_error:
            logger.warning(f"[Client] {method} {path} -> {response.status_code}")
            raise NetworkFailure(
                ErrorCode.NET_BAD_STATUS,
                f"{method} {path} returned {response.status_code}",
                details={"method": method, "path": path, "body": response.text[:500]},
                status_code=response.status_code,
            )

        logger.debug(f"[Client] {method} {path} -> {response.status_code}")
        return response

    async def list_sniffers(self) -> List[SnifferStatus]:
        """GET /sniffers"""
        response = await self.request("GET", "/sniffers")
        try:
            return _STATUS_LIST.validate_json(response.content)
        except ValidationError as e:
            raise NetworkFailure(
                ErrorCode.NET_PROTOCOL_ERROR,
                "Control service returned an unreadable sniffer list",
                details={"errors": e.error_count()},
                status_code=response.status_code,
            ) from e

    async def create_sniffer(self, config: SnifferConfig) -> Optional[SnifferConfig]:
        """POST /sniffers. Returns the created record when the service echoes one."""
        response = await self.request("POST", "/sniffers", json=config.to_wire())
        return self._echoed(response)

    async def edit_sniffer(self, config: SnifferConfig) -> Optional[SnifferConfig]:
        """PUT /sniffers. Returns the updated record when the service echoes one."""
        response = await self.request("PUT", "/sniffers", json=config.to_wire())
        return self._echoed(response)

    async def delete_sniffer(self, port: int) -> None:
        """DELETE /sniffers/{port}"""
        await self.request("DELETE", f"/sniffers/{port}")

    async def start_sniffer(self, port: int) -> None:
        """POST /sniffers/{port}/start"""
        await self.request("POST", f"/sniffers/{port}/start")

    async def stop_sniffer(self, port: int) -> None:
        """POST /sniffers/{port}/stop"""
        await self.request("POST", f"/sniffers/{port}/stop")

    @staticmethod
    def _echoed(response: httpx.Response) -> Optional[SnifferConfig]:
        # The echoed record is informational only; every mutation is followed
        # by a full reload, so an odd body is not worth failing over.
        if not response.content:
            return None
        try:
            return SnifferConfig.model_validate_json(response.content)
        except ValidationError:
            logger.debug("[Client] Ignoring unrecognised response body")
            return None

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self) -> "SnifferControlClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
