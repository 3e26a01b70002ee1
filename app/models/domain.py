"""Domain configuration models"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Boolean, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base


class DomainStatus(str, enum.Enum):
    """Well-known observed statuses; provider error strings are stored verbatim"""
    PENDING = "pending"
    PENDING_VALIDATION = "pending_validation"
    ACTIVE = "active"


class CertMode(str, enum.Enum):
    """How the local proxy obtains a certificate for the domain"""
    NONE = "none"
    CERTIFICATE = "certificate"  # reference to an uploaded certificate
    FILE = "file"  # cert/key paths on disk


class DomainConfig(Base):
    """Desired and last-observed state of one managed subdomain"""
    __tablename__ = "domain_configs"
    __table_args__ = (
        UniqueConstraint("subdomain", "root_domain", name="uq_domain_configs_subdomain_root"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    subdomain = Column(String(255), nullable=False)
    root_domain = Column(String(255), nullable=False, index=True)
    
    # Desired config
    fallback_origin = Column(String(255), nullable=False)
    optimized_targets = Column(JSON, default=list, nullable=False)
    origin_port = Column(Integer, nullable=True)
    
    cert_mode = Column(String(20), default=CertMode.NONE.value, nullable=False)
    certificate_id = Column(Integer, ForeignKey("certificates.id", ondelete="SET NULL"), nullable=True)
    cert_path = Column(String(512), nullable=True)
    key_path = Column(String(512), nullable=True)
    
    # External correlation handles
    edge_hostname_id = Column(String(64), nullable=True)
    dns_record_id_primary = Column(String(64), nullable=True)
    dns_record_id_fallback = Column(String(64), nullable=True)
    
    # Observed state, written by the reconciler only
    status = Column(String(64), default=DomainStatus.PENDING.value, nullable=False)
    last_checked_at = Column(DateTime, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    origin_rules = relationship(
        "OriginRule",
        back_populates="domain_config",
        cascade="all, delete-orphan",
    )
    
    @property
    def full_domain(self) -> str:
        return f"{self.subdomain}.{self.root_domain}"


class OriginRule(Base):
    """Path-match to backend override owned by a domain config"""
    __tablename__ = "origin_rules"
    
    id = Column(Integer, primary_key=True, index=True)
    domain_config_id = Column(
        Integer, ForeignKey("domain_configs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    
    match_pattern = Column(String(255), nullable=False)
    origin_host = Column(String(255), nullable=False)
    origin_port = Column(Integer, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    # Relationships
    domain_config = relationship("DomainConfig", back_populates="origin_rules")
