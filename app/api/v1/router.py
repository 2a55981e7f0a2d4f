"""Main v1 router aggregator"""
from fastapi import APIRouter

from app.api.v1 import auth, calculator, comments, settlements

# Create v1 router
api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(settlements.router)
api_router.include_router(comments.router)
api_router.include_router(calculator.router)
