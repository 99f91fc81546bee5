from __future__ import annotations

from fastapi import APIRouter

from .meta import router as meta_router
from .telegram import router as telegram_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(meta_router)
api_router.include_router(telegram_router)

__all__ = ["api_router"]
