"""Provisioning workflow against in-memory providers"""
import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, UpstreamError, ValidationError
from app.models.domain import DomainConfig
from app.models.optimized_endpoint import OptimizedEndpoint
from app.schemas.domain import DomainProvisionRequest

PUBLIC_IP = "198.51.100.7"


def make_request(**overrides) -> DomainProvisionRequest:
    data = {
        "subdomain": "api",
        "root_domain": "example.com",
        "fallback_origin": "origin.example.com",
        "optimized_targets": ["104.16.1.1"],
    }
    data.update(overrides)
    return DomainProvisionRequest(**data)


async def stored_domains(db):
    result = await db.execute(select(DomainConfig))
    return list(result.scalars().all())


async def test_provision_success(provisioning, db, cloudflare, aliyun, scheduled):
    result = await provisioning.provision(make_request())
    
    assert result.full_domain == "api.example.com"
    assert result.status == "pending"
    assert result.warning is None
    
    domains = await stored_domains(db)
    assert len(domains) == 1
    domain = domains[0]
    assert domain.edge_hostname_id in cloudflare.hostnames
    assert domain.optimized_targets == ["104.16.1.1"]
    assert domain.dns_record_id_primary is not None
    assert domain.dns_record_id_fallback is not None
    assert scheduled == [domain.id]
    
    # Proxied fallback origin record points at this backend
    assert ("create_dns_record", "A", "origin.example.com", PUBLIC_IP) in cloudflare.writes
    
    # Verification records use names relative to the zone
    assert aliyun.find("example.com", "_cf-custom-hostname.api", "TXT")[0].value == "ownership-token"
    assert aliyun.find("example.com", "_acme-challenge.api", "TXT")[0].value == "acme-token"
    
    geo = {r.line: r for r in aliyun.find("example.com", "api")}
    assert set(geo) == {"telecom", "unicom", "mobile", "default"}
    assert geo["telecom"].type == "A"
    assert geo["telecom"].value == "104.16.1.1"
    assert geo["default"].type == "CNAME"
    assert geo["default"].value == "origin.example.com"


async def test_existing_authoritative_record_conflicts_without_writes(provisioning, db, cloudflare, aliyun, scheduled):
    aliyun.seed("example.com", "api", "A", "203.0.113.9")
    
    with pytest.raises(ConflictError) as exc_info:
        await provisioning.provision(make_request())
    
    assert exc_info.value.code == ConflictError.DNS_RECORD_EXISTS
    assert cloudflare.writes == []
    assert aliyun.writes == []
    assert await stored_domains(db) == []
    assert scheduled == []


async def test_partial_rr_match_is_not_a_conflict(provisioning, aliyun):
    aliyun.seed("example.com", "api2", "A", "203.0.113.9")
    
    result = await provisioning.provision(make_request())
    
    assert result.full_domain == "api.example.com"


async def test_existing_edge_record_conflicts(provisioning, cloudflare, aliyun):
    cloudflare.add_edge_record("origin.example.com", "203.0.113.9")
    
    with pytest.raises(ConflictError) as exc_info:
        await provisioning.provision(make_request())
    
    assert exc_info.value.code == ConflictError.EDGE_RECORD_EXISTS
    assert cloudflare.writes == []
    assert aliyun.writes == []


async def test_already_managed_domain_conflicts(provisioning, db, cloudflare):
    db.add(DomainConfig(subdomain="api", root_domain="example.com", fallback_origin="origin.example.com"))
    await db.commit()
    
    with pytest.raises(ConflictError) as exc_info:
        await provisioning.provision(make_request())
    
    assert exc_info.value.code == ConflictError.DOMAIN_EXISTS
    assert cloudflare.writes == []


async def test_overwrite_replaces_existing_records(provisioning, cloudflare, aliyun):
    stale = aliyun.seed("example.com", "api", "A", "203.0.113.9", line="telecom")
    old_edge = cloudflare.add_edge_record("origin.example.com", "203.0.113.9")
    
    await provisioning.provision(make_request(overwrite=True))
    
    assert stale.id not in aliyun.records
    assert old_edge.id not in cloudflare.edge_records
    assert ("delete_dns_record", old_edge.id) in cloudflare.writes
    telecom = [r for r in aliyun.find("example.com", "api") if r.line == "telecom"]
    assert [r.value for r in telecom] == ["104.16.1.1"]


async def test_overwrite_reuses_matching_edge_record(provisioning, cloudflare):
    existing = cloudflare.add_edge_record("origin.example.com", PUBLIC_IP)
    
    await provisioning.provision(make_request(overwrite=True))
    
    assert existing.id in cloudflare.edge_records
    assert not [w for w in cloudflare.writes if w[0] == "create_dns_record"]


@pytest.mark.parametrize("field", ["subdomain", "root_domain", "fallback_origin"])
async def test_missing_field_is_rejected(provisioning, cloudflare, aliyun, field):
    with pytest.raises(ValidationError) as exc_info:
        await provisioning.provision(make_request(**{field: ""}))
    
    assert field in exc_info.value.message
    assert cloudflare.writes == []
    assert aliyun.writes == []


async def test_fully_qualified_subdomain_is_rejected(provisioning):
    with pytest.raises(ValidationError):
        await provisioning.provision(make_request(subdomain="api.example.com"))


async def test_public_ip_failure_aborts_before_writes(provisioning, ip_resolver, cloudflare, aliyun):
    ip_resolver.ip = None
    
    with pytest.raises(UpstreamError):
        await provisioning.provision(make_request())
    
    assert cloudflare.writes == []
    assert aliyun.writes == []


async def test_public_ip_from_request_skips_lookup(provisioning, ip_resolver, cloudflare):
    await provisioning.provision(make_request(public_ip="192.0.2.50"))
    
    assert ip_resolver.calls == 0
    assert ("create_dns_record", "A", "origin.example.com", "192.0.2.50") in cloudflare.writes


async def test_geo_dns_failure_rolls_back_custom_hostname(provisioning, db, cloudflare, aliyun, scheduled):
    aliyun.fail_lines = {"default"}
    
    with pytest.raises(UpstreamError) as exc_info:
        await provisioning.provision(make_request())
    
    assert "LineNotSupported" in exc_info.value.message
    assert cloudflare.hostnames == {}
    assert [w for w in cloudflare.writes if w[0] == "delete_custom_hostname"]
    assert await stored_domains(db) == []
    assert scheduled == []


async def test_custom_hostname_failure_stores_nothing(provisioning, db, cloudflare, aliyun):
    cloudflare.fail_create_hostname = True
    
    with pytest.raises(UpstreamError):
        await provisioning.provision(make_request())
    
    assert await stored_domains(db) == []
    assert aliyun.writes == []


async def test_failed_domestic_line_is_a_warning(provisioning, db, aliyun):
    aliyun.fail_lines = {"unicom"}
    
    result = await provisioning.provision(make_request())
    
    assert result.warning is not None
    assert "unicom" in result.warning
    assert len(await stored_domains(db)) == 1
    assert {r.line for r in aliyun.find("example.com", "api")} == {"telecom", "mobile", "default"}


async def test_best_endpoint_is_used_without_targets(provisioning, db, aliyun):
    db.add_all([
        OptimizedEndpoint(address="slow.example.net", kind="hostname", measured_latency=120.0, active=True),
        OptimizedEndpoint(address="fast.example.net", kind="hostname", measured_latency=15.0, active=True),
        OptimizedEndpoint(address="disabled.example.net", kind="hostname", measured_latency=1.0, active=False),
    ])
    await db.commit()
    
    await provisioning.provision(make_request(optimized_targets=[]))
    
    telecom = [r for r in aliyun.find("example.com", "api") if r.line == "telecom"]
    assert [(r.type, r.value) for r in telecom] == [("CNAME", "fast.example.net")]


async def test_empty_endpoint_pool_falls_back_to_origin(provisioning, aliyun):
    await provisioning.provision(make_request(optimized_targets=[]))
    
    telecom = [r for r in aliyun.find("example.com", "api") if r.line == "telecom"]
    assert [(r.type, r.value) for r in telecom] == [("CNAME", "origin.example.com")]


async def test_mixed_targets_keep_cname_alone(provisioning, aliyun):
    result = await provisioning.provision(make_request(optimized_targets=["cf.example.net", "104.16.1.1"]))
    
    telecom = [r for r in aliyun.find("example.com", "api") if r.line == "telecom"]
    assert [r.value for r in telecom] == ["cf.example.net"]
    assert "104.16.1.1" in result.warning


async def test_multiple_address_targets_share_a_line(provisioning, aliyun):
    await provisioning.provision(make_request(optimized_targets=["104.16.1.1", "2606:4700::1111"]))
    
    telecom = [r for r in aliyun.find("example.com", "api") if r.line == "telecom"]
    assert sorted((r.type, r.value) for r in telecom) == [("A", "104.16.1.1"), ("AAAA", "2606:4700::1111")]


async def test_concurrent_insert_is_reported_as_conflict(provisioning, db, cloudflare, monkeypatch):
    async def fail_commit():
        raise IntegrityError("INSERT INTO domain_configs", {}, Exception("UNIQUE constraint failed"))
    
    monkeypatch.setattr(db, "commit", fail_commit)
    
    with pytest.raises(ConflictError) as exc_info:
        await provisioning.provision(make_request())
    
    assert exc_info.value.code == ConflictError.DOMAIN_EXISTS
    assert cloudflare.hostnames == {}


def test_request_accepts_split_fallback_and_single_ip():
    request = DomainProvisionRequest(
        subdomain=" API ",
        root_domain="Example.com.",
        fallback_subdomain="origin",
        fallback_root_domain="example.com",
        optimized_ip="104.16.1.1",
    )
    
    assert request.subdomain == "api"
    assert request.root_domain == "example.com"
    assert request.fallback_origin == "origin.example.com"
    assert request.optimized_targets == ["104.16.1.1"]


async def test_scheduling_failure_is_a_warning(provisioning, db):
    def broker_down(domain_id):
        raise ConnectionError("Error 111 connecting to localhost:6379. Connection refused.")
    
    provisioning.schedule_poll = broker_down
    
    result = await provisioning.provision(make_request())
    
    assert "verification poll not scheduled" in result.warning
    assert len(await stored_domains(db)) == 1
