"""Certificate schemas"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CertificateUpload(BaseModel):
    domain: str = Field(..., min_length=1, max_length=255)
    cert_pem: str = Field(..., min_length=1)
    key_pem: str = Field(..., min_length=1)


class CertificateResponse(BaseModel):
    id: int
    domain: str
    type: str
    issuer: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)
