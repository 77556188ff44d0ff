from fastapi import APIRouter

from api.v1.routes import health
from packages.subscriptions.routes import plans, subscriptions, usage

api_router = APIRouter()

# Health check
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Plan catalog (public pricing info)
api_router.include_router(plans.router, prefix="/plans", tags=["plans"])

# Subscriber-scoped lifecycle and usage
api_router.include_router(subscriptions.router, tags=["subscriptions"])
api_router.include_router(usage.router, tags=["usage"])
