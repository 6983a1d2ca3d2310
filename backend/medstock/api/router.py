from fastapi import APIRouter

from medstock.api.admin import router as admin_router
from medstock.api.families import router as families_router
from medstock.api.medications import router as medications_router
from medstock.api.users import router as users_router

api_router = APIRouter()
api_router.include_router(admin_router)
api_router.include_router(families_router)
api_router.include_router(medications_router)
api_router.include_router(users_router)
