from fastapi import APIRouter

from intent_engine.api.v1.endpoints import intent, marketing, health

router = APIRouter(prefix="/api/v1")

router.include_router(intent.router)
router.include_router(marketing.router)
router.include_router(health.router)
