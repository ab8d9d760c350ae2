from fastapi import APIRouter
from app.api.endpoints import connections, queries

api_router = APIRouter()
api_router.include_router(connections.router, prefix="/connections", tags=["connections"])
api_router.include_router(queries.router, prefix="/queries", tags=["queries"])
