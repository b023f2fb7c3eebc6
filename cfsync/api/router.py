from fastapi import APIRouter

from cfsync.api.students import router as students_router
from cfsync.api.sync_config import router as sync_config_router

api_router = APIRouter()
api_router.include_router(sync_config_router)
api_router.include_router(students_router)
