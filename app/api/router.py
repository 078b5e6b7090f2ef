from fastapi import APIRouter

from app.api.routes import history

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(history.router, tags=["history"])
