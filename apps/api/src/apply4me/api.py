from fastapi import APIRouter

from apply4me.modules.applications.admin_router import router as admin_payments_router
from apply4me.modules.applications.router import applications_router, payments_router
from apply4me.modules.deadlines.router import router as deadlines_router
from apply4me.modules.notifications.router import router as notifications_router

api_router = APIRouter()

api_router.include_router(payments_router, prefix="/payments", tags=["Payments"])

api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])

api_router.include_router(
    admin_payments_router,
    prefix="/admin/payments",
    tags=["Admin - Payments"],
)

api_router.include_router(deadlines_router, prefix="/deadlines", tags=["Deadlines"])

api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
