from fastapi import APIRouter

from ticketbot.api.admin.config import router as config_router
from ticketbot.api.admin.departments import router as departments_router
from ticketbot.api.admin.tickets import router as tickets_router

router = APIRouter()
router.include_router(tickets_router)
router.include_router(departments_router)
router.include_router(config_router)
