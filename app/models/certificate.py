"""Certificate models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text

from app.core.database import Base


class Certificate(Base):
    """Uploaded TLS certificate used by the local proxy"""
    __tablename__ = "certificates"
    
    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String(255), nullable=False, index=True)
    type = Column(String(20), default="custom", nullable=False)
    
    cert_pem = Column(Text, nullable=False)
    key_pem = Column(Text, nullable=False)  # Should be encrypted!
    
    issuer = Column(String(500), nullable=True)
    expires_at = Column(DateTime, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
