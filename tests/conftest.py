"""Shared fixtures: in-memory database and in-memory provider fakes."""
import itertools
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Dict, List, Optional, Tuple

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.database import Base
from app.core.exceptions import UpstreamError
from app.schemas.provider import (
    AuthoritativeRecord,
    CustomHostname,
    EdgeDnsRecord,
    VerificationRecord,
)
from app.services.provisioning_service import GeoDnsConfigurator, ProvisioningService

PUBLIC_IP = "198.51.100.7"


class FakeCloudflare:
    """Cloudflare zone held in memory"""
    
    def __init__(self):
        self.hostnames: Dict[str, CustomHostname] = {}
        self.edge_records: Dict[str, EdgeDnsRecord] = {}
        self.writes: List[Tuple] = []
        self.get_calls = 0
        self.fail_get = False
        self.fail_create_hostname = False
        self.fail_delete = False
        self.hostname_status = "pending"
        self.ssl_status = "pending_validation"
        self._ids = itertools.count(1)
    
    def add_edge_record(self, name: str, content: str) -> EdgeDnsRecord:
        record = EdgeDnsRecord(id=f"cf-rec-{next(self._ids)}", name=name, type="A", content=content, proxied=True)
        self.edge_records[record.id] = record
        return record
    
    def set_status(self, hostname_status: str, ssl_status: str):
        self.hostname_status = hostname_status
        self.ssl_status = ssl_status
    
    async def create_custom_hostname(self, full_domain, fallback_origin):
        if self.fail_create_hostname:
            raise UpstreamError("custom hostname quota exceeded", provider="cloudflare")
        hostname_id = f"ch-{next(self._ids)}"
        hostname = CustomHostname(
            id=hostname_id,
            hostname=full_domain,
            status="pending",
            ssl_status="initializing",
            ownership_verification=VerificationRecord(
                name=f"_cf-custom-hostname.{full_domain}", value="ownership-token", type="TXT"
            ),
            validation_records=[
                VerificationRecord(name=f"_acme-challenge.{full_domain}", value="acme-token", type="TXT"),
            ],
        )
        self.hostnames[hostname_id] = hostname
        self.writes.append(("create_custom_hostname", full_domain, fallback_origin))
        return hostname
    
    async def get_custom_hostname(self, hostname_id):
        self.get_calls += 1
        if self.fail_get:
            raise UpstreamError("Cloudflare API error: 1003: timeout", provider="cloudflare")
        hostname = self.hostnames[hostname_id]
        return hostname.model_copy(update={
            "status": self.hostname_status,
            "ssl_status": self.ssl_status,
        })
    
    async def delete_custom_hostname(self, hostname_id):
        self.writes.append(("delete_custom_hostname", hostname_id))
        if self.fail_delete:
            raise UpstreamError("not found", provider="cloudflare")
        self.hostnames.pop(hostname_id, None)
    
    async def list_dns_records(self, name, record_type=None):
        return [
            r for r in self.edge_records.values()
            if r.name == name and (record_type is None or r.type == record_type)
        ]
    
    async def create_dns_record(self, record_type, name, content, proxied=True, ttl=1):
        record = EdgeDnsRecord(
            id=f"cf-rec-{next(self._ids)}", name=name, type=record_type, content=content, proxied=proxied
        )
        self.edge_records[record.id] = record
        self.writes.append(("create_dns_record", record_type, name, content))
        return record
    
    async def delete_dns_record(self, record_id):
        self.writes.append(("delete_dns_record", record_id))
        self.edge_records.pop(record_id, None)


class FakeAliyun:
    """Aliyun DNS zone(s) held in memory"""
    
    def __init__(self):
        self.records: Dict[str, Tuple[str, AuthoritativeRecord]] = {}
        self.writes: List[Tuple] = []
        self.fail_lines = set()
        self.fail_list = False
        self.fail_delete = False
        self._ids = itertools.count(1000)
    
    def seed(self, root_domain, relative_name, record_type, value, line="default") -> AuthoritativeRecord:
        record = AuthoritativeRecord(
            id=str(next(self._ids)), relative_name=relative_name, type=record_type, value=value, line=line
        )
        self.records[record.id] = (root_domain, record)
        return record
    
    def find(self, root_domain, relative_name=None, record_type=None) -> List[AuthoritativeRecord]:
        return [
            r for root, r in self.records.values()
            if root == root_domain
            and (relative_name is None or r.relative_name == relative_name)
            and (record_type is None or r.type == record_type)
        ]
    
    @property
    def created(self) -> List[Tuple]:
        return [w for w in self.writes if w[0] == "create"]
    
    async def list_records(self, root_domain, subdomain=None):
        if self.fail_list:
            raise UpstreamError("Aliyun DNS error Throttling: too many requests", provider="aliyun")
        return [
            r for root, r in self.records.values()
            if root == root_domain and (subdomain is None or subdomain in r.relative_name)
        ]
    
    async def create_record(self, root_domain, relative_name, record_type, value, line="default", ttl=None):
        if line in self.fail_lines:
            raise UpstreamError(f"Aliyun DNS error LineNotSupported: {line}", provider="aliyun")
        record = self.seed(root_domain, relative_name, record_type, value, line)
        self.writes.append(("create", root_domain, relative_name, record_type, value, line))
        return record.id
    
    async def delete_record(self, record_id):
        self.writes.append(("delete", record_id))
        if self.fail_delete:
            raise UpstreamError("Aliyun DNS error Forbidden", provider="aliyun")
        self.records.pop(record_id, None)


class FakeIPResolver:
    def __init__(self, ip: Optional[str] = PUBLIC_IP):
        self.ip = ip
        self.calls = 0
    
    async def resolve(self):
        self.calls += 1
        if self.ip is None:
            raise UpstreamError("Unable to determine the public IP of this server", provider="public_ip")
        return self.ip


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cloudflare():
    return FakeCloudflare()


@pytest.fixture
def aliyun():
    return FakeAliyun()


@pytest.fixture
def ip_resolver():
    return FakeIPResolver()


@pytest.fixture
def clients_factory(cloudflare, aliyun):
    @asynccontextmanager
    async def factory():
        yield SimpleNamespace(cloudflare=cloudflare, aliyun=aliyun)
    return factory


@pytest.fixture
def scheduled():
    return []


@pytest.fixture
def provisioning(db, cloudflare, aliyun, ip_resolver, scheduled):
    geo_dns = GeoDnsConfigurator(aliyun, domestic_lines=["telecom", "unicom", "mobile"], default_line="default")
    return ProvisioningService(
        db,
        cloudflare,
        aliyun,
        ip_resolver=ip_resolver,
        geo_dns=geo_dns,
        schedule_poll=scheduled.append,
    )
