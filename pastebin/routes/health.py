"""
Health check route.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from pastebin.models import HealthCheck
from pastebin.routes.dependencies import get_service
from pastebin.service import PasteService

router = APIRouter()


@router.get("/api/healthz", response_model=HealthCheck)
def health_check(service: PasteService = Depends(get_service)):
    """
    Health check endpoint.
    Returns 200 with ok=true if the store answers, 500 with ok=false otherwise.
    """
    if service.is_healthy():
        return HealthCheck(ok=True)
    return JSONResponse(status_code=500, content={"ok": False})
