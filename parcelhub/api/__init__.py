from fastapi import APIRouter

from parcelhub.api.routers import admin, orders, wallet, webhooks


def create_api_router(prefix: str = "") -> APIRouter:
    router = APIRouter(prefix=prefix)
    router.include_router(orders.router, prefix="/orders", tags=["orders"])
    router.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
    router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
    router.include_router(admin.router, prefix="/admin", tags=["admin"])
    return router


__all__ = [
    "create_api_router",
]
