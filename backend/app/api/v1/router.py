# backend/app/api/v1/router.py
from fastapi import APIRouter
from backend.app.api.v1.endpoints import auth, two_factor

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(two_factor.router, prefix="/2fa", tags=["two-factor"])
