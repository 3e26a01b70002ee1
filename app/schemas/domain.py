"""Domain schemas"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from enum import Enum


class CertModeEnum(str, Enum):
    """Certificate binding mode"""
    NONE = "none"
    CERTIFICATE = "certificate"
    FILE = "file"


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip().rstrip(".").lower()


class DomainProvisionRequest(BaseModel):
    """Schema for domain provisioning"""
    subdomain: str = ""
    root_domain: str = ""
    fallback_origin: Optional[str] = None
    # The fallback origin may also be given as its two halves
    fallback_subdomain: Optional[str] = None
    fallback_root_domain: Optional[str] = None
    optimized_targets: List[str] = Field(default_factory=list)
    optimized_ip: Optional[str] = None
    public_ip: Optional[str] = None
    origin_port: Optional[int] = Field(None, ge=1, le=65535)
    overwrite: bool = False
    
    @model_validator(mode="after")
    def normalize(self) -> "DomainProvisionRequest":
        self.subdomain = _clean_name(self.subdomain) or ""
        self.root_domain = _clean_name(self.root_domain) or ""
        if not self.fallback_origin and self.fallback_subdomain and self.fallback_root_domain:
            self.fallback_origin = (
                f"{_clean_name(self.fallback_subdomain)}.{_clean_name(self.fallback_root_domain)}"
            )
        self.fallback_origin = _clean_name(self.fallback_origin)
        targets = [t.strip() for t in self.optimized_targets if t and t.strip()]
        if not targets and self.optimized_ip and self.optimized_ip.strip():
            targets = [self.optimized_ip.strip()]
        self.optimized_targets = targets
        return self


class ProvisionResult(BaseModel):
    """Outcome of a successful provisioning run"""
    domain_id: int
    full_domain: str
    status: str
    warning: Optional[str] = None


class DomainUpdate(BaseModel):
    """Schema for domain update (proxy port and certificate binding)"""
    origin_port: Optional[int] = Field(None, ge=1, le=65535)
    cert_mode: Optional[CertModeEnum] = None
    certificate_id: Optional[int] = None
    cert_path: Optional[str] = None
    key_path: Optional[str] = None


class OriginRuleCreate(BaseModel):
    """Schema for origin rule creation"""
    match_pattern: str = Field(..., min_length=1, max_length=255)
    origin_host: str = Field(..., min_length=1, max_length=255)
    origin_port: int = Field(..., ge=1, le=65535)


class OriginRuleResponse(BaseModel):
    id: int
    domain_config_id: int
    match_pattern: str
    origin_host: str
    origin_port: int
    enabled: bool
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class DomainResponse(BaseModel):
    """Schema for domain response"""
    id: int
    subdomain: str
    root_domain: str
    full_domain: str
    fallback_origin: str
    optimized_targets: List[str]
    origin_port: Optional[int] = None
    cert_mode: CertModeEnum
    certificate_id: Optional[int] = None
    cert_path: Optional[str] = None
    key_path: Optional[str] = None
    edge_hostname_id: Optional[str] = None
    dns_record_id_primary: Optional[str] = None
    dns_record_id_fallback: Optional[str] = None
    status: str
    last_checked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    
    model_config = ConfigDict(from_attributes=True)


class DomainDetailResponse(DomainResponse):
    origin_rules: List[OriginRuleResponse] = Field(default_factory=list)


class ReconcileResponse(BaseModel):
    """Result of one verification round"""
    success: bool
    status: Optional[str] = None
    hostname_status: Optional[str] = None
    ssl_status: Optional[str] = None
    repaired: List[str] = Field(default_factory=list)
    message: Optional[str] = None
