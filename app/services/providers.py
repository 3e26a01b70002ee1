"""Construction of provider adapters from settings"""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from app.core.config import Settings, settings as default_settings
from app.services.aliyun import AliyunConfig, AliyunDNSClient
from app.services.cloudflare import CloudflareClient, CloudflareConfig
from app.services.provisioning_service import GeoDnsConfigurator
from app.services.public_ip import PublicIPResolver


@dataclass
class ProviderClients:
    cloudflare: CloudflareClient
    aliyun: AliyunDNSClient
    
    async def aclose(self):
        await self.cloudflare.aclose()
        await self.aliyun.aclose()


def build_clients(config: Optional[Settings] = None) -> ProviderClients:
    """New adapters for the current credentials; nothing is cached"""
    config = config or default_settings
    return ProviderClients(
        cloudflare=CloudflareClient(CloudflareConfig.from_settings(config)),
        aliyun=AliyunDNSClient(AliyunConfig.from_settings(config)),
    )


def build_ip_resolver(config: Optional[Settings] = None) -> PublicIPResolver:
    config = config or default_settings
    return PublicIPResolver(config.public_ip_services, timeout=config.HTTP_TIMEOUT)


def build_geo_dns(aliyun: AliyunDNSClient, config: Optional[Settings] = None) -> GeoDnsConfigurator:
    config = config or default_settings
    return GeoDnsConfigurator(
        aliyun,
        domestic_lines=config.geo_domestic_lines,
        default_line=config.GEO_DEFAULT_LINE,
        ttl=config.DNS_RECORD_TTL,
    )


@asynccontextmanager
async def provider_clients(config: Optional[Settings] = None) -> AsyncIterator[ProviderClients]:
    clients = build_clients(config)
    try:
        yield clients
    finally:
        await clients.aclose()


async def get_provider_clients() -> AsyncIterator[ProviderClients]:
    """FastAPI dependency"""
    async with provider_clients() as clients:
        yield clients
