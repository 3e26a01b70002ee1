"""Optimized endpoint pool"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.models.optimized_endpoint import OptimizedEndpoint, EndpointKind
from app.schemas.optimized_endpoint import OptimizedEndpointCreate
from app.services.dns_utils import infer_record_type

# Cloudflare-fronted hostnames that resolve to well-connected edge addresses
DEFAULT_ENDPOINTS = [
    "www.visa.com",
    "ip.sb",
    "www.udacity.com",
    "singapore.com",
    "time.is",
    "www.whoer.net",
    "cdnjs.com",
    "store.epicgames.com",
    "ai.cloudflare.com",
    "www.wto.org",
    "www.gco.gov.qa",
    "support.cloudflare.com",
    "pages.cloudflare.com",
    "www.visa.com.tw",
    "www.racknerd.com",
    "workers.cloudflare.com",
    "icook.tw",
    "www.whatismyip.com",
    "www.ipget.net",
    "community.cloudflare.com",
    "www.fortnite.com",
    "icook.hk",
    "www.visakorea.com",
    "ns.cloudflare.com",
    "japan.com",
    "portal.cloudflarepartners.com",
    "developers.cloudflare.com",
    "gur.gov.ua",
]


class OptimizedEndpointService:
    
    @staticmethod
    async def list_endpoints(db: AsyncSession) -> List[OptimizedEndpoint]:
        """All endpoints, fastest first, unmeasured last"""
        result = await db.execute(
            select(OptimizedEndpoint).order_by(
                OptimizedEndpoint.measured_latency.is_(None),
                OptimizedEndpoint.measured_latency.asc(),
                OptimizedEndpoint.id,
            )
        )
        return list(result.scalars().all())
    
    @staticmethod
    async def create_endpoint(db: AsyncSession, data: OptimizedEndpointCreate) -> OptimizedEndpoint:
        address = data.address.strip().lower()
        existing = await db.execute(select(OptimizedEndpoint).where(OptimizedEndpoint.address == address))
        if existing.scalar_one_or_none():
            raise ConflictError(f"Optimized endpoint {address} already exists")
        
        kind = data.kind
        if kind is None:
            kind = EndpointKind.HOSTNAME.value if infer_record_type(address) == "CNAME" else EndpointKind.IP.value
        
        endpoint = OptimizedEndpoint(
            address=address,
            kind=kind,
            region=data.region or "Unknown",
            active=True,
        )
        db.add(endpoint)
        await db.commit()
        await db.refresh(endpoint)
        return endpoint
    
    @staticmethod
    async def get_endpoint(db: AsyncSession, endpoint_id: int) -> Optional[OptimizedEndpoint]:
        return await db.get(OptimizedEndpoint, endpoint_id)
    
    @staticmethod
    async def delete_endpoint(db: AsyncSession, endpoint_id: int) -> bool:
        endpoint = await db.get(OptimizedEndpoint, endpoint_id)
        if not endpoint:
            return False
        await db.delete(endpoint)
        await db.commit()
        return True
    
    @staticmethod
    async def toggle_endpoint(db: AsyncSession, endpoint_id: int) -> Optional[OptimizedEndpoint]:
        endpoint = await db.get(OptimizedEndpoint, endpoint_id)
        if not endpoint:
            return None
        endpoint.active = not endpoint.active
        await db.commit()
        await db.refresh(endpoint)
        return endpoint
    
    @staticmethod
    async def seed_defaults(db: AsyncSession) -> int:
        """Insert the default pool when the table is empty"""
        existing = await db.execute(select(OptimizedEndpoint.id).limit(1))
        if existing.scalar_one_or_none() is not None:
            return 0
        for address in DEFAULT_ENDPOINTS:
            db.add(OptimizedEndpoint(
                address=address,
                kind=EndpointKind.HOSTNAME.value,
                region="Global",
                active=True,
            ))
        await db.commit()
        return len(DEFAULT_ENDPOINTS)
