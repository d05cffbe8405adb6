from fastapi import APIRouter
from testscope.api.routes import analysis, integrations, health

api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router)
api_router.include_router(health.config_router)
api_router.include_router(analysis.router)
api_router.include_router(integrations.router)
