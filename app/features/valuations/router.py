"""
/valuations endpoints:
- submit a questionnaire (prices it and issues the order identifier)
- read / list
- staff edits and status transitions (valuations are never deleted)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.valuations.schemas import (
    StatusChange,
    ValuationCreate,
    ValuationRead,
    ValuationStatus,
    ValuationUpdate,
)
from app.features.valuations.service import (
    change_status,
    create_valuation,
    get_valuation,
    list_valuations,
    update_valuation,
)

router = APIRouter(prefix="/valuations", tags=["valuations"])


@router.post("", response_model=ValuationRead, status_code=201)
async def create_valuation_endpoint(payload: ValuationCreate, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await create_valuation(db, payload)


@router.get("", response_model=list[ValuationRead])
async def list_valuations_endpoint(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: Optional[str] = Query(None, min_length=1),
    status: Optional[ValuationStatus] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
):
    return await list_valuations(db, user_id=user_id, status=status, limit=limit)


@router.get("/{order_id}", response_model=ValuationRead)
async def get_valuation_endpoint(order_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_valuation(db, order_id)


@router.patch("/{order_id}", response_model=ValuationRead)
async def update_valuation_endpoint(order_id: str, payload: ValuationUpdate, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await update_valuation(db, order_id, payload)


@router.post("/{order_id}/status", response_model=ValuationRead)
async def change_status_endpoint(order_id: str, payload: StatusChange, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await change_status(db, order_id, payload)
