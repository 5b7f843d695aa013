"""
Async client for the network appliance REST API.

Thin wrapper over httpx: every call is rate limited, authenticated with the
appliance API key and returns decoded JSON (or raw bytes for packet
captures). Transport failures and error statuses raise ExtrahopError.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import ExtrahopError
from .queries import (
    DEFAULT_PCAP_LIMIT_BYTES,
    build_console_search,
    build_pcap_search,
    build_peer_topology_query,
    build_realtime_queries,
)
from .rate_limiter import RequestRateLimiter, get_extrahop_rate_limiter

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
PCAP_MEDIA_TYPE = "application/vnd.tcpdump.pcap"


class ExtrahopClient:
    """
    Network appliance API client.

    Example:
        async with ExtrahopClient("https://eda.local", api_key) as client:
            device = await client.find_console_device()
            metrics = await client.get_device_realtime_metrics(device["id"])
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 30.0,
        rate_limiter: Optional[RequestRateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_url:
            raise ValueError("api_url is required")
        self.base_url = api_url.rstrip("/")
        self.rate_limiter = rate_limiter or get_extrahop_rate_limiter()
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}{API_PREFIX}",
            headers={
                "Authorization": f"ExtraHop apikey={api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ExtrahopClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        await self.rate_limiter.acquire()
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Appliance API {method} {path} failed with HTTP {status}")
            raise ExtrahopError(f"{method} {path} returned HTTP {status}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.error(f"Appliance API {method} {path} failed: {e}")
            raise ExtrahopError(f"{method} {path} failed: {e}") from e
        return response

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._request("GET", path, params=params)
        return response.json()

    async def _post(self, path: str, body: Dict[str, Any]) -> Any:
        response = await self._request("POST", path, json=body)
        return response.json()

    # Devices

    async def search_devices(self, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        """POST /devices/search"""
        return await self._post("/devices/search", body)

    async def get_device(self, device_id: int) -> Dict[str, Any]:
        return await self._get(f"/devices/{device_id}")

    async def find_console_device(self, name_pattern: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """First device matching the console vendor/name rules, or None."""
        devices = await self.search_devices(build_console_search(name_pattern))
        return devices[0] if devices else None

    # Metrics

    async def query_metrics(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST /metrics"""
        return await self._post("/metrics", body)

    async def get_device_realtime_metrics(self, device_id: int) -> Dict[str, Dict[str, Any]]:
        """
        Last 30 seconds of 1-second net and tcp metrics.

        Returns:
            {"net": <metrics response>, "tcp": <metrics response>}
        """
        queries = build_realtime_queries(device_id)
        return {
            "net": await self.query_metrics(queries["net"]),
            "tcp": await self.query_metrics(queries["tcp"]),
        }

    # Topology

    async def get_device_topology(self, device_id: int, from_ms: int = -300_000) -> Dict[str, Any]:
        """POST /activitymaps/query for the peers of one device."""
        return await self._post("/activitymaps/query", build_peer_topology_query(device_id, from_ms))

    # Alerts

    async def get_alerts(self) -> List[Dict[str, Any]]:
        return await self._get("/alerts")

    # Packets

    async def download_device_pcap(
        self,
        ip: str,
        from_ms: int,
        until_ms: int = 0,
        limit_bytes: int = DEFAULT_PCAP_LIMIT_BYTES,
        bpf: Optional[str] = None,
        peer_ip: Optional[str] = None,
    ) -> bytes:
        """POST /packets/search; returns the raw pcap bytes."""
        body = build_pcap_search(ip, from_ms, until_ms, limit_bytes=limit_bytes, bpf=bpf, ip2=peer_ip)
        response = await self._request("POST", "/packets/search", json=body, headers={"Accept": PCAP_MEDIA_TYPE})
        logger.info(f"Downloaded {len(response.content)} bytes of packets for {ip}")
        return response.content

    # System

    async def test_connection(self) -> Dict[str, Any]:
        """Check credentials against GET /extrahop. Never raises."""
        try:
            info = await self._get("/extrahop")
        except ExtrahopError as e:
            return {"success": False, "message": str(e)}
        return {"success": True, "message": "Connected to appliance", "appliance": info}
