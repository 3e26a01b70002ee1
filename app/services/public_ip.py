"""Detect the public IP of this host"""
import logging
from typing import List, Optional

import httpx

from app.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class PublicIPResolver:
    """Ask "what is my IP" services in order, first answer wins"""
    
    def __init__(
        self,
        services: List[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.services = services
        self.timeout = timeout
        self.transport = transport
    
    async def resolve(self) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for url in self.services:
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                    data = response.json()
                    # ipify answers {"ip": ...}, ip-api answers {"query": ...}
                    ip = data.get("ip") or data.get("query")
                    if ip:
                        return ip
                    logger.warning(f"Public IP service {url} returned no address")
                except (httpx.HTTPError, ValueError) as e:
                    logger.warning(f"Public IP service {url} failed: {e}")
        raise UpstreamError("Unable to determine the public IP of this server", provider="public_ip")
