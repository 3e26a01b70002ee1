"""
Aliyun DNS (Alidns) client.

Talks to the RPC style API (version 2015-01-09) with signature version 1.0
(HMAC-SHA1 over the canonicalized query string).
"""
import base64
import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from app.core.exceptions import UpstreamError
from app.schemas.provider import AuthoritativeRecord

logger = logging.getLogger(__name__)

PROVIDER = "aliyun"
API_VERSION = "2015-01-09"
PAGE_SIZE = 500


def _percent_encode(value: Any) -> str:
    return quote(str(value), safe="~")


def sign_parameters(params: Dict[str, Any], access_key_secret: str, method: str = "GET") -> str:
    """Compute the RPC signature for a parameter set"""
    canonical = "&".join(
        f"{_percent_encode(k)}={_percent_encode(v)}" for k, v in sorted(params.items())
    )
    string_to_sign = f"{method}&{_percent_encode('/')}&{_percent_encode(canonical)}"
    digest = hmac.new(
        f"{access_key_secret}&".encode(), string_to_sign.encode(), hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode()


@dataclass(frozen=True)
class AliyunConfig:
    access_key_id: str
    access_key_secret: str
    endpoint: str = "https://alidns.cn-hangzhou.aliyuncs.com"
    timeout: float = 10.0
    
    @classmethod
    def from_settings(cls, settings) -> "AliyunConfig":
        return cls(
            access_key_id=settings.ALIYUN_ACCESS_KEY_ID,
            access_key_secret=settings.ALIYUN_ACCESS_KEY_SECRET,
            endpoint=settings.ALIYUN_DNS_ENDPOINT,
            timeout=settings.HTTP_TIMEOUT,
        )


class AliyunDNSClient:
    """Authoritative DNS records with per-line (geo) routing"""
    
    def __init__(self, config: AliyunConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.endpoint,
            timeout=config.timeout,
            transport=transport,
        )
    
    async def aclose(self):
        await self._client.aclose()
    
    def _signed_params(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        signed = {
            "Format": "JSON",
            "Version": API_VERSION,
            "AccessKeyId": self.config.access_key_id,
            "SignatureMethod": "HMAC-SHA1",
            "Timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "SignatureVersion": "1.0",
            "SignatureNonce": uuid.uuid4().hex,
            "Action": action,
        }
        signed.update({k: v for k, v in params.items() if v is not None})
        signed["Signature"] = sign_parameters(signed, self.config.access_key_secret)
        return signed
    
    async def _call(self, action: str, **params) -> Dict[str, Any]:
        try:
            response = await self._client.get("/", params=self._signed_params(action, params))
        except httpx.HTTPError as e:
            logger.error(f"Aliyun {action} failed: {e}")
            raise UpstreamError(f"Aliyun request failed: {e}", provider=PROVIDER) from e
        
        try:
            body = response.json()
        except ValueError:
            body = {}
        
        if response.is_error or "Code" in body:
            message = body.get("Message") or f"HTTP {response.status_code}"
            code = body.get("Code", "HTTPError")
            logger.error(f"Aliyun {action} error {code}: {message}")
            raise UpstreamError(f"Aliyun DNS error {code}: {message}", provider=PROVIDER)
        
        return body
    
    async def list_records(self, root_domain: str, subdomain: Optional[str] = None) -> List[AuthoritativeRecord]:
        """List records of a zone, optionally filtered by RR keyword (fuzzy match)"""
        records: List[AuthoritativeRecord] = []
        page = 1
        while True:
            body = await self._call(
                "DescribeDomainRecords",
                DomainName=root_domain,
                RRKeyWord=subdomain,
                PageNumber=page,
                PageSize=PAGE_SIZE,
            )
            items = (body.get("DomainRecords") or {}).get("Record") or []
            records.extend(AuthoritativeRecord.from_api(item) for item in items)
            total = int(body.get("TotalCount", len(records)))
            if not items or len(records) >= total:
                break
            page += 1
        return records
    
    async def create_record(
        self,
        root_domain: str,
        relative_name: str,
        record_type: str,
        value: str,
        line: str = "default",
        ttl: Optional[int] = None,
    ) -> str:
        """Add a record and return its id"""
        body = await self._call(
            "AddDomainRecord",
            DomainName=root_domain,
            RR=relative_name,
            Type=record_type,
            Value=value,
            Line=line,
            TTL=ttl,
        )
        record_id = str(body["RecordId"])
        logger.info(f"Added Aliyun record {relative_name}.{root_domain} {record_type} {value} [{line}] (id={record_id})")
        return record_id
    
    async def delete_record(self, record_id: str) -> None:
        await self._call("DeleteDomainRecord", RecordId=record_id)
        logger.info(f"Deleted Aliyun record {record_id}")
    
    async def list_domains(self) -> List[str]:
        body = await self._call("DescribeDomains", PageSize=100)
        domains = (body.get("Domains") or {}).get("Domain") or []
        return [d["DomainName"] for d in domains if d.get("DomainName")]
