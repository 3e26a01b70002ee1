"""Provider diagnostics"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from app.core.exceptions import UpstreamError
from app.services.providers import ProviderClients, get_provider_clients

router = APIRouter()


@router.get("/cloudflare/test-connection")
async def cloudflare_test_connection(clients: ProviderClients = Depends(get_provider_clients)):
    try:
        await clients.cloudflare.verify_token()
    except UpstreamError as e:
        return {"success": False, "message": e.message}
    return {"success": True, "message": "Cloudflare connection OK"}


@router.get("/cloudflare/custom-hostnames")
async def cloudflare_custom_hostnames(clients: ProviderClients = Depends(get_provider_clients)):
    hostnames = await clients.cloudflare.list_custom_hostnames()
    return {"success": True, "data": [h.model_dump() for h in hostnames]}


@router.get("/aliyun/domains")
async def aliyun_domains(clients: ProviderClients = Depends(get_provider_clients)):
    return {"success": True, "data": await clients.aliyun.list_domains()}


@router.get("/aliyun/records")
async def aliyun_records(
    domain: str = Query(..., description="Root domain"),
    subdomain: Optional[str] = Query(None, description="RR keyword"),
    clients: ProviderClients = Depends(get_provider_clients),
):
    records = await clients.aliyun.list_records(domain, subdomain)
    return {"success": True, "data": [r.model_dump() for r in records]}
