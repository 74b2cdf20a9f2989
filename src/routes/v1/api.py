from fastapi import APIRouter

from src.engineering.router import router as engineering_router
from src.announcements.router import router as announcements_router
from src.impacts.router import router as impacts_router
from src.files.router import router as files_router

api_router = APIRouter()

api_router.include_router(engineering_router)
api_router.include_router(announcements_router)
api_router.include_router(impacts_router)
api_router.include_router(files_router)
