"""
Domain provisioning.

Stitches a subdomain together across the edge provider (Cloudflare custom
hostname + proxied fallback origin record) and the authoritative DNS
(Aliyun verification records + geo-routed records), then stores the
``DomainConfig`` row and hands the domain to the verification poller.

The steps run strictly in order. Only the custom hostname is rolled back
when geo DNS configuration (or the final insert) fails; records written
before that are left in place and logged.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, UpstreamError, ValidationError
from app.core.redis import redis_client
from app.models.domain import DomainConfig, DomainStatus
from app.models.optimized_endpoint import OptimizedEndpoint
from app.schemas.domain import DomainProvisionRequest, ProvisionResult
from app.schemas.provider import CustomHostname
from app.services.aliyun import AliyunDNSClient
from app.services.cloudflare import CloudflareClient
from app.services.dns_utils import infer_record_type, relative_record_name
from app.services.public_ip import PublicIPResolver

logger = logging.getLogger(__name__)

# (subdomain, root_domain) pairs currently being provisioned by this process
_in_flight: Set[Tuple[str, str]] = set()


@dataclass
class GeoDnsResult:
    primary_record_id: Optional[str] = None
    fallback_record_id: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class GeoDnsConfigurator:
    """Writes the per-line record set for one subdomain"""
    
    def __init__(
        self,
        aliyun: AliyunDNSClient,
        domestic_lines: List[str],
        default_line: str = "default",
        ttl: Optional[int] = None,
    ):
        self.aliyun = aliyun
        self.domestic_lines = domestic_lines
        self.default_line = default_line
        self.ttl = ttl
    
    @staticmethod
    def line_targets(targets: List[str]) -> List[str]:
        """
        Targets that can share one line: a CNAME must be alone, address
        records may be several.
        """
        if not targets:
            return []
        if infer_record_type(targets[0]) == "CNAME":
            return targets[:1]
        return [t for t in targets if infer_record_type(t) != "CNAME"]
    
    async def clear(self, root_domain: str, subdomain: str) -> int:
        """Delete every record whose RR is exactly ``subdomain``"""
        existing = await self.aliyun.list_records(root_domain, subdomain)
        removed = 0
        for record in existing:
            if record.relative_name == subdomain:
                await self.aliyun.delete_record(record.id)
                removed += 1
        return removed
    
    async def apply(
        self, root_domain: str, subdomain: str, targets: List[str], fallback_origin: str
    ) -> GeoDnsResult:
        result = GeoDnsResult()
        
        removed = await self.clear(root_domain, subdomain)
        if removed:
            logger.info(f"Removed {removed} existing record(s) for {subdomain}.{root_domain}")
        
        usable = self.line_targets(targets)
        skipped = [t for t in targets if t not in usable]
        if skipped:
            result.warnings.append(f"targets not combinable on one line were skipped: {', '.join(skipped)}")
        
        for line in self.domestic_lines:
            for target in usable:
                record_type = infer_record_type(target)
                try:
                    record_id = await self.aliyun.create_record(
                        root_domain, subdomain, record_type, target, line=line, ttl=self.ttl
                    )
                except UpstreamError as e:
                    logger.warning(f"Geo line {line} failed for {subdomain}.{root_domain}: {e.message}")
                    result.warnings.append(f"line {line} ({target}): {e.message}")
                    continue
                if result.primary_record_id is None:
                    result.primary_record_id = record_id
        
        # The default line is the only one that has to succeed
        result.fallback_record_id = await self.aliyun.create_record(
            root_domain,
            subdomain,
            infer_record_type(fallback_origin),
            fallback_origin,
            line=self.default_line,
            ttl=self.ttl,
        )
        return result


class ProvisioningService:
    """Runs the ordered creation workflow for one domain"""
    
    def __init__(
        self,
        db: AsyncSession,
        cloudflare: CloudflareClient,
        aliyun: AliyunDNSClient,
        ip_resolver: PublicIPResolver,
        geo_dns: GeoDnsConfigurator,
        schedule_poll: Optional[Callable[[int], Any]] = None,
        lock_ttl: int = 300,
    ):
        self.db = db
        self.cloudflare = cloudflare
        self.aliyun = aliyun
        self.ip_resolver = ip_resolver
        self.geo_dns = geo_dns
        self.schedule_poll = schedule_poll
        self.lock_ttl = lock_ttl
    
    async def provision(self, request: DomainProvisionRequest) -> ProvisionResult:
        """Create a managed domain; raises ValidationError, ConflictError or UpstreamError"""
        self._validate(request)
        
        key = (request.subdomain, request.root_domain)
        if key in _in_flight:
            raise ConflictError(
                f"{request.subdomain}.{request.root_domain} is already being provisioned",
                code=ConflictError.DOMAIN_EXISTS,
            )
        _in_flight.add(key)
        lock_key = f"provision:{request.subdomain}.{request.root_domain}"
        lock_token = uuid.uuid4().hex
        try:
            if not await redis_client.acquire_lock(lock_key, lock_token, self.lock_ttl):
                raise ConflictError(
                    f"{request.subdomain}.{request.root_domain} is already being provisioned",
                    code=ConflictError.DOMAIN_EXISTS,
                )
            try:
                return await self._provision(request)
            finally:
                await redis_client.release_lock(lock_key, lock_token)
        finally:
            _in_flight.discard(key)
    
    @staticmethod
    def _validate(request: DomainProvisionRequest):
        missing = [
            name for name, value in (
                ("subdomain", request.subdomain),
                ("root_domain", request.root_domain),
                ("fallback_origin", request.fallback_origin),
            ) if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if request.subdomain.endswith(f".{request.root_domain}"):
            raise ValidationError("subdomain must be relative to root_domain")
    
    async def _provision(self, request: DomainProvisionRequest) -> ProvisionResult:
        subdomain = request.subdomain
        root_domain = request.root_domain
        fallback_origin = request.fallback_origin
        full_domain = f"{subdomain}.{root_domain}"
        warnings: List[str] = []
        
        existing = await self.db.execute(
            select(DomainConfig.id).where(
                DomainConfig.subdomain == subdomain,
                DomainConfig.root_domain == root_domain,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"{full_domain} is already managed", code=ConflictError.DOMAIN_EXISTS)
        
        # 1. Pre-flight conflict checks
        if not request.overwrite:
            await self._preflight(subdomain, root_domain, fallback_origin)
        
        # 2. Public IP of this backend
        public_ip = request.public_ip or await self.ip_resolver.resolve()
        logger.info(f"Provisioning {full_domain} via {fallback_origin} (public IP {public_ip})")
        
        # 3. Proxied fallback origin record at the edge
        await self._ensure_fallback_record(fallback_origin, public_ip, request.overwrite)
        
        # 4. Custom hostname
        hostname = await self.cloudflare.create_custom_hostname(full_domain, fallback_origin)
        
        # 5. Verification records, best effort; the reconciler repairs gaps
        warnings.extend(await self._write_verification_records(hostname, root_domain))
        
        # 6. Optimized targets
        targets = request.optimized_targets or [await self._best_endpoint(fallback_origin)]
        
        # 7. Geo-routed records, 8. rollback of the custom hostname on failure
        try:
            geo = await self.geo_dns.apply(root_domain, subdomain, targets, fallback_origin)
        except UpstreamError as e:
            logger.error(f"Geo DNS configuration failed for {full_domain}: {e.message}")
            await self._rollback(hostname, fallback_origin, root_domain)
            raise UpstreamError(f"Aliyun DNS configuration failed: {e.message}", provider=e.provider) from e
        warnings.extend(geo.warnings)
        
        # 9. Persist
        domain = DomainConfig(
            subdomain=subdomain,
            root_domain=root_domain,
            fallback_origin=fallback_origin,
            optimized_targets=targets,
            origin_port=request.origin_port,
            edge_hostname_id=hostname.id,
            dns_record_id_primary=geo.primary_record_id,
            dns_record_id_fallback=geo.fallback_record_id,
            status=DomainStatus.PENDING.value,
        )
        self.db.add(domain)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"{full_domain} was inserted concurrently: {e}")
            await self._rollback(hostname, fallback_origin, root_domain)
            raise ConflictError(f"{full_domain} is already managed", code=ConflictError.DOMAIN_EXISTS) from e
        await self.db.refresh(domain)
        
        # 10. Bounded verification poll
        if self.schedule_poll is not None:
            try:
                self.schedule_poll(domain.id)
            except Exception as e:
                logger.error(f"Could not schedule verification poll for {full_domain}: {e}", exc_info=True)
                warnings.append("verification poll not scheduled; the periodic sweep will pick it up")
        
        warning = "; ".join(warnings) if warnings else None
        if warning:
            logger.warning(f"{full_domain} provisioned with warnings: {warning}")
        else:
            logger.info(f"{full_domain} provisioned (id={domain.id}), verification pending")
        
        return ProvisionResult(
            domain_id=domain.id,
            full_domain=full_domain,
            status=domain.status,
            warning=warning,
        )
    
    async def _preflight(self, subdomain: str, root_domain: str, fallback_origin: str):
        records = await self.aliyun.list_records(root_domain, subdomain)
        if any(r.relative_name == subdomain for r in records):
            raise ConflictError(
                f"Aliyun DNS record already exists: {subdomain}.{root_domain}",
                code=ConflictError.DNS_RECORD_EXISTS,
            )
        
        edge_records = await self.cloudflare.list_dns_records(fallback_origin, "A")
        if edge_records:
            raise ConflictError(
                f"Cloudflare DNS record already exists: {fallback_origin}",
                code=ConflictError.EDGE_RECORD_EXISTS,
            )
    
    async def _ensure_fallback_record(self, fallback_origin: str, public_ip: str, overwrite: bool):
        if overwrite:
            for record in await self.cloudflare.list_dns_records(fallback_origin, "A"):
                if record.content == public_ip:
                    logger.info(f"Reusing Cloudflare A record {fallback_origin} -> {public_ip}")
                    return
                await self.cloudflare.delete_dns_record(record.id)
        await self.cloudflare.create_dns_record("A", fallback_origin, public_ip, proxied=True)
    
    async def _write_verification_records(self, hostname: CustomHostname, root_domain: str) -> List[str]:
        warnings = []
        for record in hostname.dns_records():
            rr = relative_record_name(record.name, root_domain)
            try:
                await self.aliyun.create_record(root_domain, rr, record.type, record.value)
            except UpstreamError as e:
                logger.warning(f"Could not add verification record {rr} {record.type}: {e.message}")
                warnings.append(f"verification record {rr} {record.type}: {e.message}")
        return warnings
    
    async def _best_endpoint(self, fallback_origin: str) -> str:
        result = await self.db.execute(
            select(OptimizedEndpoint.address)
            .where(OptimizedEndpoint.active == True)
            .order_by(
                OptimizedEndpoint.measured_latency.is_(None),
                OptimizedEndpoint.measured_latency.asc(),
                OptimizedEndpoint.id,
            )
            .limit(1)
        )
        address = result.scalar_one_or_none()
        if address:
            return address
        logger.info(f"No active optimized endpoint, using {fallback_origin}")
        return fallback_origin
    
    async def _rollback(self, hostname: CustomHostname, fallback_origin: str, root_domain: str):
        try:
            await self.cloudflare.delete_custom_hostname(hostname.id)
            logger.info(f"Rolled back custom hostname {hostname.hostname} ({hostname.id})")
        except UpstreamError as e:
            logger.error(f"Rollback of custom hostname {hostname.id} failed: {e.message}")
        leftovers = [fallback_origin] + [
            relative_record_name(r.name, root_domain) for r in hostname.dns_records()
        ]
        logger.warning(f"Records left for manual cleanup: {', '.join(leftovers)}")
