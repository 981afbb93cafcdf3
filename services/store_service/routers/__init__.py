"""Store service routers package."""

from services.store_service.routers.admin import router as admin_router
from services.store_service.routers.checkout import router as checkout_router
from services.store_service.routers.orders import router as orders_router
from services.store_service.routers.payments import router as payments_router
from services.store_service.routers.wholesale import router as wholesale_router

__all__ = [
    "admin_router",
    "checkout_router",
    "orders_router",
    "payments_router",
    "wholesale_router",
]
