"""Domain config store"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError, PanelError, ValidationError
from app.models.certificate import Certificate
from app.models.domain import CertMode, DomainConfig, OriginRule
from app.schemas.domain import DomainUpdate, OriginRuleCreate
from app.services.aliyun import AliyunDNSClient
from app.services.cloudflare import CloudflareClient

logger = logging.getLogger(__name__)


class DomainService:
    """Domain service for database operations"""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_by_id(self, domain_id: int) -> Optional[DomainConfig]:
        """Get domain config with its origin rules"""
        result = await self.db.execute(
            select(DomainConfig)
            .options(selectinload(DomainConfig.origin_rules))
            .where(DomainConfig.id == domain_id)
        )
        return result.scalar_one_or_none()
    
    async def get_or_404(self, domain_id: int) -> DomainConfig:
        domain = await self.get_by_id(domain_id)
        if domain is None:
            raise NotFoundError(f"Domain config {domain_id} not found")
        return domain
    
    async def list_all(self) -> List[DomainConfig]:
        result = await self.db.execute(
            select(DomainConfig).order_by(DomainConfig.created_at.desc(), DomainConfig.id.desc())
        )
        return list(result.scalars().all())
    
    async def update(self, domain: DomainConfig, domain_update: DomainUpdate) -> DomainConfig:
        """Update proxy port and certificate binding"""
        data = domain_update.model_dump(exclude_unset=True)
        
        if "origin_port" in data:
            domain.origin_port = data["origin_port"]
        
        if "cert_mode" in data and data["cert_mode"] is not None:
            mode = CertMode(data["cert_mode"])
            if mode == CertMode.CERTIFICATE:
                certificate_id = data.get("certificate_id")
                if certificate_id is None or await self.db.get(Certificate, certificate_id) is None:
                    raise ValidationError("A valid certificate_id is required for certificate mode")
                domain.certificate_id = certificate_id
                domain.cert_path = None
                domain.key_path = None
            elif mode == CertMode.FILE:
                if not data.get("cert_path") or not data.get("key_path"):
                    raise ValidationError("cert_path and key_path are required for file mode")
                domain.cert_path = data["cert_path"]
                domain.key_path = data["key_path"]
                domain.certificate_id = None
            else:
                domain.certificate_id = None
                domain.cert_path = None
                domain.key_path = None
            domain.cert_mode = mode.value
        
        await self.db.commit()
        await self.db.refresh(domain)
        return domain
    
    async def add_origin_rule(self, domain: DomainConfig, rule: OriginRuleCreate) -> OriginRule:
        origin_rule = OriginRule(
            domain_config_id=domain.id,
            match_pattern=rule.match_pattern,
            origin_host=rule.origin_host,
            origin_port=rule.origin_port,
            enabled=True,
        )
        self.db.add(origin_rule)
        await self.db.commit()
        await self.db.refresh(origin_rule)
        return origin_rule
    
    async def delete_origin_rule(self, domain_id: int, rule_id: int) -> bool:
        result = await self.db.execute(
            select(OriginRule).where(
                OriginRule.id == rule_id,
                OriginRule.domain_config_id == domain_id,
            )
        )
        rule = result.scalar_one_or_none()
        if rule is None:
            return False
        await self.db.delete(rule)
        await self.db.commit()
        return True
    
    async def delete(
        self,
        domain: DomainConfig,
        cloudflare: CloudflareClient,
        aliyun: AliyunDNSClient,
    ) -> List[str]:
        """
        Remove provider state for the domain, then the row itself.
        
        Provider calls are best effort: failures are logged and returned as
        warnings but never block the local delete.
        """
        warnings: List[str] = []
        label = domain.full_domain
        
        async def attempt(description: str, call):
            try:
                await call
            except PanelError as e:
                logger.warning(f"Delete {label}: {description} failed: {e.message}")
                warnings.append(f"{description}: {e.message}")
        
        if domain.edge_hostname_id:
            await attempt("delete custom hostname", cloudflare.delete_custom_hostname(domain.edge_hostname_id))
        
        deleted_ids = set()
        for record_id in (domain.dns_record_id_primary, domain.dns_record_id_fallback):
            if record_id:
                await attempt(f"delete Aliyun record {record_id}", aliyun.delete_record(record_id))
                deleted_ids.add(record_id)
        
        # Remaining geo lines share the subdomain RR
        try:
            records = await aliyun.list_records(domain.root_domain, domain.subdomain)
        except PanelError as e:
            logger.warning(f"Delete {label}: listing Aliyun records failed: {e.message}")
            warnings.append(f"list Aliyun records: {e.message}")
            records = []
        for record in records:
            if record.relative_name == domain.subdomain and record.id not in deleted_ids:
                logger.info(f"Deleting Aliyun record {record.relative_name} {record.type} {record.value}")
                await attempt(f"delete Aliyun record {record.id}", aliyun.delete_record(record.id))
        
        try:
            edge_records = await cloudflare.list_dns_records(domain.fallback_origin, "A")
        except PanelError as e:
            logger.warning(f"Delete {label}: listing Cloudflare records failed: {e.message}")
            warnings.append(f"list Cloudflare records: {e.message}")
            edge_records = []
        for record in edge_records:
            logger.info(f"Deleting fallback origin record {record.name} (ID: {record.id})")
            await attempt(f"delete Cloudflare record {record.id}", cloudflare.delete_dns_record(record.id))
        
        await self.db.delete(domain)
        await self.db.commit()
        logger.info(f"Deleted domain config {label}")
        return warnings
