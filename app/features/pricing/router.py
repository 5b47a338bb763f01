from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.pricing.schemas import (
    PricingRulesRead,
    PricingRulesUpsert,
    QuoteRequest,
    QuoteResponse,
    ResolvedRulesRead,
)
from app.features.pricing.service import (
    delete_product_rules,
    delete_variant_rules,
    get_global_rules,
    get_product_rules,
    get_resolved_rules,
    get_variant_rules,
    put_global_rules,
    put_product_rules,
    put_variant_rules,
    quote,
)

router = APIRouter(prefix="/pricing", tags=["pricing"])
rules_router = APIRouter(prefix="/pricing-rules", tags=["pricing:rules"])


@router.post("/quote", response_model=QuoteResponse)
async def quote_endpoint(payload: QuoteRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    # Preview only: nothing is stored and no order number is consumed.
    return await quote(db, payload)


@rules_router.get("/global", response_model=PricingRulesRead)
async def get_global_rules_endpoint(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_global_rules(db)


@rules_router.put("/global", response_model=PricingRulesRead)
async def put_global_rules_endpoint(payload: PricingRulesUpsert, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await put_global_rules(db, payload)


@rules_router.get("/resolve/{product_id}", response_model=ResolvedRulesRead)
async def resolve_rules_endpoint(
    product_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    variant_id: str | None = Query(None, min_length=1),
):
    return await get_resolved_rules(db, product_id, variant_id)


@rules_router.get("/products/{product_id}", response_model=PricingRulesRead)
async def get_product_rules_endpoint(product_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_product_rules(db, product_id)


@rules_router.put("/products/{product_id}", response_model=PricingRulesRead)
async def put_product_rules_endpoint(
    product_id: str,
    payload: PricingRulesUpsert,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await put_product_rules(db, product_id, payload)


@rules_router.delete("/products/{product_id}")
async def delete_product_rules_endpoint(product_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await delete_product_rules(db, product_id)
    return {"ok": True}


@rules_router.get("/products/{product_id}/variants/{variant_id}", response_model=PricingRulesRead)
async def get_variant_rules_endpoint(product_id: str, variant_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_variant_rules(db, product_id, variant_id)


@rules_router.put("/products/{product_id}/variants/{variant_id}", response_model=PricingRulesRead)
async def put_variant_rules_endpoint(
    product_id: str,
    variant_id: str,
    payload: PricingRulesUpsert,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await put_variant_rules(db, product_id, variant_id, payload)


@rules_router.delete("/products/{product_id}/variants/{variant_id}")
async def delete_variant_rules_endpoint(product_id: str, variant_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await delete_variant_rules(db, product_id, variant_id)
    return {"ok": True}
