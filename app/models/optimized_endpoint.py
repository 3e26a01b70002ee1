"""Optimized endpoint pool"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float
import enum

from app.core.database import Base


class EndpointKind(str, enum.Enum):
    IP = "ip"
    HOSTNAME = "hostname"


class OptimizedEndpoint(Base):
    """Low-latency address for in-region clients; latency is measured elsewhere"""
    __tablename__ = "optimized_endpoints"
    
    id = Column(Integer, primary_key=True, index=True)
    address = Column(String(255), unique=True, nullable=False)
    kind = Column(String(20), default=EndpointKind.HOSTNAME.value, nullable=False)
    region = Column(String(64), nullable=True)
    
    measured_latency = Column(Float, nullable=True)  # milliseconds
    active = Column(Boolean, default=True, nullable=False)
    last_checked_at = Column(DateTime, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
