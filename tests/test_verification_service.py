"""Reconciler behaviour: status mirroring and idempotent record repair"""
from collections import Counter

import httpx
import pytest

from app.core.exceptions import NotFoundError
from app.models.domain import DomainConfig
from app.schemas.domain import DomainProvisionRequest
from app.schemas.provider import VerificationRecord
from app.services.verification_service import VerificationService, collapse_status


@pytest.fixture
async def domain(provisioning, db):
    result = await provisioning.provision(DomainProvisionRequest(
        subdomain="api",
        root_domain="example.com",
        fallback_origin="origin.example.com",
        optimized_targets=["104.16.1.1"],
    ))
    return await db.get(DomainConfig, result.domain_id)


@pytest.fixture
def verifier(db, cloudflare, aliyun):
    return VerificationService(db, cloudflare, aliyun)


def record_pairs(aliyun):
    return Counter((r.relative_name, r.type) for _, r in aliyun.records.values())


@pytest.mark.parametrize("hostname_status, ssl_status, expected", [
    ("active", "active", "active"),
    ("pending", "pending_validation", "pending_validation"),
    ("active", "pending_validation", "pending_validation"),
    ("pending", "active", "pending"),
    ("pending", None, "pending"),
    (None, None, "pending"),
    ("active", "validation_timed_out", "validation_timed_out"),
    ("active", None, "pending"),
    (None, "active", "pending"),
])
def test_collapse_status(hostname_status, ssl_status, expected):
    assert collapse_status(hostname_status, ssl_status) == expected


async def test_active_hostname_updates_status_without_writes(verifier, domain, cloudflare, aliyun):
    cloudflare.set_status("active", "active")
    writes_before = len(aliyun.writes)
    
    result = await verifier.reconcile(domain)
    
    assert result.success
    assert result.is_active
    assert domain.status == "active"
    assert domain.last_checked_at is not None
    assert len(aliyun.writes) == writes_before


async def test_active_hostname_without_ssl_status_is_not_active(verifier, domain, cloudflare):
    cloudflare.set_status("active", None)
    
    result = await verifier.reconcile(domain)
    
    assert result.success
    assert not result.is_active
    assert domain.status == "pending"


async def test_missing_verification_record_is_repaired(verifier, domain, aliyun):
    acme = aliyun.find("example.com", "_acme-challenge.api", "TXT")[0]
    del aliyun.records[acme.id]
    
    result = await verifier.reconcile(domain)
    
    assert result.success
    assert result.repaired == ["_acme-challenge.api TXT"]
    assert domain.status == "pending_validation"
    assert [r.value for r in aliyun.find("example.com", "_acme-challenge.api", "TXT")] == ["acme-token"]


async def test_repeated_reconcile_never_duplicates_records(verifier, domain, aliyun):
    for record in aliyun.find("example.com", "_acme-challenge.api") + aliyun.find("example.com", "_cf-custom-hostname.api"):
        del aliyun.records[record.id]
    
    for _ in range(5):
        result = await verifier.reconcile(domain)
        assert result.success
    
    pairs = record_pairs(aliyun)
    assert pairs[("_acme-challenge.api", "TXT")] == 1
    assert pairs[("_cf-custom-hostname.api", "TXT")] == 1


async def test_quoted_existing_value_counts_as_present(verifier, domain, aliyun):
    ownership = aliyun.find("example.com", "_cf-custom-hostname.api", "TXT")[0]
    aliyun.records[ownership.id] = ("example.com", ownership.model_copy(update={"value": '"ownership-token"'}))
    writes_before = len(aliyun.writes)
    
    result = await verifier.reconcile(domain)
    
    assert result.repaired == []
    assert len(aliyun.writes) == writes_before


async def test_fetch_failure_leaves_state_untouched(verifier, domain, cloudflare, aliyun):
    cloudflare.fail_get = True
    writes_before = len(aliyun.writes)
    
    result = await verifier.reconcile(domain)
    
    assert not result.success
    assert "timeout" in result.message
    assert domain.status == "pending"
    assert domain.last_checked_at is None
    assert len(aliyun.writes) == writes_before


async def test_transport_error_is_a_failure_result(db, domain, aliyun):
    class BrokenCloudflare:
        async def get_custom_hostname(self, hostname_id):
            raise httpx.ConnectError("connection refused")
    
    result = await VerificationService(db, BrokenCloudflare(), aliyun).reconcile(domain)
    
    assert not result.success
    assert domain.status == "pending"


async def test_repair_failure_does_not_abort_reconcile(verifier, domain, aliyun):
    for record in aliyun.find("example.com", "_acme-challenge.api"):
        del aliyun.records[record.id]
    aliyun.fail_list = True
    
    result = await verifier.reconcile(domain)
    
    assert result.success
    assert result.repaired == []
    assert domain.status == "pending_validation"


async def test_domain_without_edge_hostname(verifier, db):
    domain = DomainConfig(subdomain="www", root_domain="example.com", fallback_origin="origin.example.com")
    db.add(domain)
    await db.commit()
    
    result = await verifier.reconcile(domain)
    
    assert not result.success
    assert result.message == "missing edge hostname"


async def test_reconcile_by_id_unknown_domain(verifier):
    with pytest.raises(NotFoundError):
        await verifier.reconcile_by_id(999)


async def test_apex_validation_record(verifier, aliyun):
    record = VerificationRecord(name="example.com", value="apex-token", type="TXT")
    
    assert await verifier.ensure_record("example.com", record) == "@ TXT"
    assert await verifier.ensure_record("example.com", record) is None
    assert [r.value for r in aliyun.find("example.com", "@", "TXT")] == ["apex-token"]
