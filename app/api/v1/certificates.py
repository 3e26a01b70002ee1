"""Certificate management API endpoints"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.certificate import CertificateUpload, CertificateResponse
from app.services.certificate_service import CertificateService

router = APIRouter()


@router.get("", response_model=List[CertificateResponse])
async def list_certificates(db: AsyncSession = Depends(get_db)):
    return await CertificateService.list_certificates(db)


@router.post("/upload", response_model=CertificateResponse, status_code=status.HTTP_201_CREATED)
async def upload_certificate(data: CertificateUpload, db: AsyncSession = Depends(get_db)):
    """Import a PEM certificate and key; expiry is read from the certificate"""
    return await CertificateService.create_certificate(db, data)


@router.delete("/{certificate_id}")
async def delete_certificate(certificate_id: int, db: AsyncSession = Depends(get_db)):
    if not await CertificateService.delete_certificate(db, certificate_id):
        raise HTTPException(status_code=404, detail="Certificate not found")
    return {"success": True, "message": "Certificate deleted"}
