"""Main API router aggregating all v1 routes."""

from fastapi import APIRouter

from chatledger.api.routes import chats, health

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(chats.router)
