"""Uploaded certificate storage"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from cryptography import x509
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.models.certificate import Certificate
from app.schemas.certificate import CertificateUpload

logger = logging.getLogger(__name__)


class CertificateService:
    
    @staticmethod
    def _normalize_cert_dt(dt: Optional[datetime]) -> Optional[datetime]:
        """Naive UTC, matching the DateTime columns"""
        if dt is not None and dt.tzinfo is not None:
            return dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt
    
    @staticmethod
    def parse_certificate(cert_pem: str) -> dict:
        """Extract issuer and expiry from a PEM certificate"""
        try:
            cert = x509.load_pem_x509_certificate(cert_pem.encode())
        except ValueError as e:
            raise ValidationError(f"Invalid certificate: {e}") from e
        not_after = getattr(cert, "not_valid_after_utc", None) or cert.not_valid_after
        return {
            "issuer": cert.issuer.rfc4514_string(),
            "expires_at": CertificateService._normalize_cert_dt(not_after),
        }
    
    @staticmethod
    async def list_certificates(db: AsyncSession) -> List[Certificate]:
        result = await db.execute(select(Certificate).order_by(Certificate.created_at.desc()))
        return list(result.scalars().all())
    
    @staticmethod
    async def create_certificate(db: AsyncSession, data: CertificateUpload) -> Certificate:
        info = CertificateService.parse_certificate(data.cert_pem)
        certificate = Certificate(
            domain=data.domain.strip().lower(),
            type="custom",
            cert_pem=data.cert_pem,
            key_pem=data.key_pem,
            issuer=info["issuer"],
            expires_at=info["expires_at"],
        )
        db.add(certificate)
        await db.commit()
        await db.refresh(certificate)
        logger.info(f"Imported certificate for {certificate.domain} (expires {certificate.expires_at})")
        return certificate
    
    @staticmethod
    async def delete_certificate(db: AsyncSession, certificate_id: int) -> bool:
        certificate = await db.get(Certificate, certificate_id)
        if not certificate:
            return False
        await db.delete(certificate)
        await db.commit()
        return True
