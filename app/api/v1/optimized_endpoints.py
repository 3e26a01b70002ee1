"""Optimized endpoint pool endpoints"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.optimized_endpoint import OptimizedEndpointCreate, OptimizedEndpointResponse
from app.services.optimized_endpoint_service import OptimizedEndpointService

router = APIRouter()


@router.get("", response_model=List[OptimizedEndpointResponse])
async def list_endpoints(db: AsyncSession = Depends(get_db)):
    return await OptimizedEndpointService.list_endpoints(db)


@router.post("", response_model=OptimizedEndpointResponse, status_code=status.HTTP_201_CREATED)
async def create_endpoint(data: OptimizedEndpointCreate, db: AsyncSession = Depends(get_db)):
    return await OptimizedEndpointService.create_endpoint(db, data)


@router.delete("/{endpoint_id}")
async def delete_endpoint(endpoint_id: int, db: AsyncSession = Depends(get_db)):
    if not await OptimizedEndpointService.delete_endpoint(db, endpoint_id):
        raise HTTPException(status_code=404, detail="Optimized endpoint not found")
    return {"success": True}


@router.put("/{endpoint_id}/toggle", response_model=OptimizedEndpointResponse)
async def toggle_endpoint(endpoint_id: int, db: AsyncSession = Depends(get_db)):
    endpoint = await OptimizedEndpointService.toggle_endpoint(db, endpoint_id)
    if not endpoint:
        raise HTTPException(status_code=404, detail="Optimized endpoint not found")
    return endpoint
