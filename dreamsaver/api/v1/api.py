from fastapi import APIRouter

from dreamsaver.api.v1.routes import goals, notification, payments

api_router = APIRouter()

api_router.include_router(goals.router)
api_router.include_router(payments.router)
api_router.include_router(notification.router)
