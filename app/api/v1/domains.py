"""Domain endpoints"""
from typing import Any, Callable, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.api.deps import get_poll_scheduler
from app.core.config import settings
from app.core.database import get_db
from app.schemas.domain import (
    DomainProvisionRequest,
    DomainUpdate,
    DomainResponse,
    DomainDetailResponse,
    OriginRuleCreate,
    OriginRuleResponse,
    ReconcileResponse,
)
from app.services.domain_service import DomainService
from app.services.providers import ProviderClients, build_geo_dns, build_ip_resolver, get_provider_clients
from app.services.provisioning_service import ProvisioningService
from app.services.verification_service import VerificationService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[DomainResponse])
async def list_domains(db: AsyncSession = Depends(get_db)):
    """List all managed domains with their last observed status"""
    return await DomainService(db).list_all()


@router.post("", status_code=status.HTTP_201_CREATED)
async def provision_domain(
    request: DomainProvisionRequest,
    db: AsyncSession = Depends(get_db),
    clients: ProviderClients = Depends(get_provider_clients),
    schedule_poll: Callable[[int], Any] = Depends(get_poll_scheduler),
):
    """
    Provision a subdomain: Cloudflare custom hostname, verification records
    and geo-routed records at Aliyun. Verification continues in the background.
    """
    service = ProvisioningService(
        db,
        clients.cloudflare,
        clients.aliyun,
        ip_resolver=build_ip_resolver(),
        geo_dns=build_geo_dns(clients.aliyun),
        schedule_poll=schedule_poll,
        lock_ttl=settings.PROVISION_LOCK_TTL,
    )
    result = await service.provision(request)
    
    return {
        "success": True,
        "message": (
            f"Domain configured with warnings: {result.warning}"
            if result.warning
            else "Domain configured, verification is running in the background"
        ),
        "data": result.model_dump(),
    }


@router.get("/{domain_id}", response_model=DomainDetailResponse)
async def get_domain(domain_id: int, db: AsyncSession = Depends(get_db)):
    """Get a domain with its origin rules"""
    return await DomainService(db).get_or_404(domain_id)


@router.patch("/{domain_id}", response_model=DomainResponse)
async def update_domain(
    domain_id: int,
    domain_update: DomainUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update proxy port or certificate binding"""
    domain_service = DomainService(db)
    domain = await domain_service.get_or_404(domain_id)
    return await domain_service.update(domain, domain_update)


@router.delete("/{domain_id}")
async def delete_domain(
    domain_id: int,
    db: AsyncSession = Depends(get_db),
    clients: ProviderClients = Depends(get_provider_clients),
):
    """Delete a domain and, best effort, its provider records"""
    domain_service = DomainService(db)
    domain = await domain_service.get_or_404(domain_id)
    warnings = await domain_service.delete(domain, clients.cloudflare, clients.aliyun)
    return {"success": True, "message": "Domain deleted", "warnings": warnings}


@router.post("/{domain_id}/verify", response_model=ReconcileResponse)
async def verify_domain(
    domain_id: int,
    db: AsyncSession = Depends(get_db),
    clients: ProviderClients = Depends(get_provider_clients),
):
    """Run one verification round now"""
    service = VerificationService(db, clients.cloudflare, clients.aliyun)
    result = await service.reconcile_by_id(domain_id)
    return ReconcileResponse(
        success=result.success,
        status=result.status,
        hostname_status=result.hostname_status,
        ssl_status=result.ssl_status,
        repaired=result.repaired,
        message=result.message,
    )


@router.post("/{domain_id}/origin-rules", response_model=OriginRuleResponse, status_code=status.HTTP_201_CREATED)
async def add_origin_rule(
    domain_id: int,
    rule: OriginRuleCreate,
    db: AsyncSession = Depends(get_db),
):
    domain_service = DomainService(db)
    domain = await domain_service.get_or_404(domain_id)
    return await domain_service.add_origin_rule(domain, rule)


@router.delete("/{domain_id}/origin-rules/{rule_id}")
async def delete_origin_rule(
    domain_id: int,
    rule_id: int,
    db: AsyncSession = Depends(get_db),
):
    deleted = await DomainService(db).delete_origin_rule(domain_id, rule_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Origin rule not found")
    return {"success": True, "message": "Origin rule deleted"}
