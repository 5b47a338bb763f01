from __future__ import annotations

from fastapi import FastAPI

from app.core.config import config
from app.core.errors import register_exception_handlers
from app.core.logging import init_logging
from app.db.mongo import mongo_lifespan
from app.features.pricing.router import router as pricing_router
from app.features.pricing.router import rules_router as pricing_rules_router
from app.features.valuations.router import router as valuations_router


# Configure logging ON IMPORT so all subsequent module logs behave correctly.
init_logging(
    root_level="INFO",
    app_level="DEBUG" if config.debug else "INFO",
    third_party_level="WARNING",
)


app = FastAPI(title=config.app_name, lifespan=mongo_lifespan)
register_exception_handlers(app)

app.include_router(pricing_router)
app.include_router(pricing_rules_router)
app.include_router(valuations_router)


@app.get("/health")
async def health():
    return {"ok": True}
