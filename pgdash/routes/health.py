from fastapi import APIRouter

from pgdash.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health():
    return {"status": "ok", "service": settings.app_name, "version": settings.app_version}
