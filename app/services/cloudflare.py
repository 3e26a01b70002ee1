"""
Cloudflare client for the edge side of a managed domain.

Covers the custom hostname lifecycle (Cloudflare for SaaS) and the proxied
A record that fronts the fallback origin. Every method raises
``UpstreamError`` on transport errors, non-2xx answers and envelopes with
``success: false``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from app.core.exceptions import UpstreamError
from app.schemas.provider import CustomHostname, EdgeDnsRecord

logger = logging.getLogger(__name__)

PROVIDER = "cloudflare"


@dataclass(frozen=True)
class CloudflareConfig:
    """Credentials and zone for one Cloudflare account"""
    api_token: str
    zone_id: str
    base_url: str = "https://api.cloudflare.com/client/v4"
    min_tls_version: str = "1.2"
    timeout: float = 10.0
    
    @classmethod
    def from_settings(cls, settings) -> "CloudflareConfig":
        return cls(
            api_token=settings.CF_API_TOKEN,
            zone_id=settings.CF_ZONE_ID,
            base_url=settings.CF_API_BASE_URL,
            min_tls_version=settings.CF_MIN_TLS_VERSION,
            timeout=settings.HTTP_TIMEOUT,
        )


class CloudflareClient:
    """Zone-scoped Cloudflare API v4 client"""
    
    def __init__(self, config: CloudflareConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Authorization": f"Bearer {config.api_token}",
                "Content-Type": "application/json",
            },
            timeout=config.timeout,
            transport=transport,
        )
    
    async def aclose(self):
        await self._client.aclose()
    
    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make a request to the Cloudflare API and unwrap the envelope"""
        try:
            response = await self._client.request(method, endpoint, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Cloudflare {method} {endpoint} failed: {e}")
            raise UpstreamError(f"Cloudflare request failed: {e}", provider=PROVIDER) from e
        
        try:
            body = response.json()
        except ValueError:
            body = {}
        
        if response.is_error or not body.get("success", False):
            errors = body.get("errors") or []
            error_msg = "; ".join(
                f"{e.get('code')}: {e.get('message')}" for e in errors
            ) or f"HTTP {response.status_code}"
            logger.error(f"Cloudflare API error on {method} {endpoint}: {error_msg}")
            raise UpstreamError(f"Cloudflare API error: {error_msg}", provider=PROVIDER)
        
        return body
    
    @property
    def _zone(self) -> str:
        return f"zones/{self.config.zone_id}"
    
    async def verify_token(self) -> bool:
        """Check that the API token is valid"""
        await self._request("GET", "user/tokens/verify")
        return True
    
    # Custom hostnames
    
    async def create_custom_hostname(self, full_domain: str, fallback_origin: str) -> CustomHostname:
        """Create a custom hostname with TXT-validated DV certificate"""
        payload = {
            "hostname": full_domain,
            "ssl": {
                "method": "txt",
                "type": "dv",
                "settings": {"min_tls_version": self.config.min_tls_version},
            },
            "custom_origin_server": fallback_origin,
        }
        body = await self._request("POST", f"{self._zone}/custom_hostnames", json=payload)
        hostname = CustomHostname.from_api(body["result"])
        logger.info(f"Created custom hostname {full_domain} (id={hostname.id})")
        return hostname
    
    async def get_custom_hostname(self, hostname_id: str) -> CustomHostname:
        body = await self._request("GET", f"{self._zone}/custom_hostnames/{hostname_id}")
        return CustomHostname.from_api(body["result"])
    
    async def delete_custom_hostname(self, hostname_id: str) -> None:
        await self._request("DELETE", f"{self._zone}/custom_hostnames/{hostname_id}")
        logger.info(f"Deleted custom hostname {hostname_id}")
    
    async def list_custom_hostnames(self) -> List[CustomHostname]:
        hostnames: List[CustomHostname] = []
        page = 1
        total_pages = 1
        while page <= total_pages:
            body = await self._request(
                "GET", f"{self._zone}/custom_hostnames", params={"page": page, "per_page": 50}
            )
            hostnames.extend(CustomHostname.from_api(item) for item in body.get("result") or [])
            total_pages = (body.get("result_info") or {}).get("total_pages", total_pages)
            page += 1
        return hostnames
    
    # Zone DNS records
    
    async def list_dns_records(self, name: str, record_type: Optional[str] = None) -> List[EdgeDnsRecord]:
        params = {"name": name}
        if record_type:
            params["type"] = record_type
        body = await self._request("GET", f"{self._zone}/dns_records", params=params)
        return [
            EdgeDnsRecord(
                id=item["id"],
                name=item.get("name", ""),
                type=item.get("type", ""),
                content=item.get("content", ""),
                proxied=bool(item.get("proxied", False)),
            )
            for item in body.get("result") or []
        ]
    
    async def create_dns_record(
        self, record_type: str, name: str, content: str, proxied: bool = True, ttl: int = 1
    ) -> EdgeDnsRecord:
        payload = {
            "type": record_type,
            "name": name,
            "content": content,
            "proxied": proxied,
            "ttl": ttl,
        }
        body = await self._request("POST", f"{self._zone}/dns_records", json=payload)
        result = body["result"]
        logger.info(f"Created Cloudflare {record_type} record {name} -> {content} (proxied={proxied})")
        return EdgeDnsRecord(
            id=result["id"],
            name=result.get("name", name),
            type=result.get("type", record_type),
            content=result.get("content", content),
            proxied=bool(result.get("proxied", proxied)),
        )
    
    async def delete_dns_record(self, record_id: str) -> None:
        await self._request("DELETE", f"{self._zone}/dns_records/{record_id}")
        logger.info(f"Deleted Cloudflare DNS record {record_id}")
