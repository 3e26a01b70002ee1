"""Optimized endpoint schemas"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class OptimizedEndpointCreate(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    kind: Optional[str] = Field(None, pattern="^(ip|hostname)$")
    region: Optional[str] = Field(None, max_length=64)


class OptimizedEndpointResponse(BaseModel):
    id: int
    address: str
    kind: str
    region: Optional[str] = None
    measured_latency: Optional[float] = None
    active: bool
    last_checked_at: Optional[datetime] = None
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)
