"""
API router assembly.

Point-cloud, profile and admin endpoints require a bearer token (admin
routes additionally require the admin plan). Reading the demo pointer is
public.
"""

from fastapi import APIRouter, Depends

from viizor.api.v1.helpers.authentication import get_current_user

from viizor.api.v1.endpoints import admin, clouds, demo, users

# Authenticated endpoints
api_router = APIRouter(dependencies=[Depends(get_current_user)])
api_router.include_router(clouds.router, prefix="/clouds", tags=["clouds"])
api_router.include_router(users.router)
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])

# Endpoints that manage their own auth (some routes are public)
public_router = APIRouter()
public_router.include_router(demo.router, prefix="/demo", tags=["demo"])
