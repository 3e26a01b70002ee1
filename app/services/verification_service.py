"""
Verification reconciler.

Mirrors the edge provider's custom hostname status into ``DomainConfig.status``
and republishes any verification record missing from the authoritative DNS.
Safe to call any number of times: a record that already exists with the
expected type and value is never written again.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PanelError
from app.models.domain import DomainConfig, DomainStatus
from app.schemas.provider import CustomHostname, VerificationRecord
from app.services.aliyun import AliyunDNSClient
from app.services.cloudflare import CloudflareClient
from app.services.dns_utils import normalize_record_value, relative_record_name

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    success: bool
    status: Optional[str] = None
    hostname_status: Optional[str] = None
    ssl_status: Optional[str] = None
    repaired: List[str] = field(default_factory=list)
    message: Optional[str] = None
    
    @property
    def is_active(self) -> bool:
        return self.success and self.status == DomainStatus.ACTIVE.value


def collapse_status(hostname_status: Optional[str], ssl_status: Optional[str]) -> str:
    """Fold the hostname x ssl status pair into the single stored status"""
    if hostname_status == "active" and ssl_status == "active":
        return DomainStatus.ACTIVE.value
    if ssl_status and ssl_status != "active":
        return ssl_status
    if hostname_status and hostname_status != "active":
        return hostname_status
    # One side active, the other not reported yet
    return DomainStatus.PENDING.value


class VerificationService:
    """Reconciles one domain against the providers"""
    
    def __init__(self, db: AsyncSession, cloudflare: CloudflareClient, aliyun: AliyunDNSClient):
        self.db = db
        self.cloudflare = cloudflare
        self.aliyun = aliyun
    
    async def reconcile_by_id(self, domain_id: int) -> ReconcileResult:
        domain = await self.db.get(DomainConfig, domain_id)
        if domain is None:
            raise NotFoundError(f"Domain config {domain_id} not found")
        return await self.reconcile(domain)
    
    async def reconcile(self, domain: DomainConfig) -> ReconcileResult:
        label = domain.full_domain
        if not domain.edge_hostname_id:
            return ReconcileResult(success=False, status=domain.status, message="missing edge hostname")
        
        try:
            hostname = await self.cloudflare.get_custom_hostname(domain.edge_hostname_id)
        except (PanelError, httpx.HTTPError) as e:
            logger.error(f"Failed to fetch status of {label}: {e}")
            return ReconcileResult(success=False, status=domain.status, message=str(e))
        
        status = collapse_status(hostname.status, hostname.ssl_status)
        if status != domain.status:
            logger.info(
                f"{label}: {domain.status} -> {status} "
                f"(hostname={hostname.status}, ssl={hostname.ssl_status})"
            )
            domain.status = status
        domain.last_checked_at = datetime.utcnow()
        await self.db.commit()
        
        result = ReconcileResult(
            success=True,
            status=status,
            hostname_status=hostname.status,
            ssl_status=hostname.ssl_status,
        )
        if hostname.is_active:
            return result
        
        result.repaired = await self._repair(domain, hostname)
        return result
    
    async def _repair(self, domain: DomainConfig, hostname: CustomHostname) -> List[str]:
        repaired = []
        for record in hostname.dns_records():
            try:
                written = await self.ensure_record(domain.root_domain, record)
            except (PanelError, httpx.HTTPError) as e:
                logger.error(f"Repair of {record.name} {record.type} for {domain.full_domain} failed: {e}")
                continue
            if written:
                repaired.append(written)
        return repaired
    
    async def ensure_record(self, root_domain: str, record: VerificationRecord) -> Optional[str]:
        """Create ``record`` unless an identical one exists; returns what was written"""
        rr = relative_record_name(record.name, root_domain)
        record_type = record.type.upper()
        expected = normalize_record_value(record_type, record.value)
        
        existing = await self.aliyun.list_records(root_domain, rr)
        for r in existing:
            if (
                r.relative_name == rr
                and r.type.upper() == record_type
                and normalize_record_value(record_type, r.value) == expected
            ):
                return None
        
        logger.info(f"Repair: adding missing verification record {rr} {record_type} {record.value}")
        await self.aliyun.create_record(root_domain, rr, record_type, record.value)
        return f"{rr} {record_type}"
