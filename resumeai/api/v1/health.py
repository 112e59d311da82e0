from fastapi import APIRouter

from resumeai import __version__

router = APIRouter()


@router.get("/health", summary="Health Check", description="Liveness probe; does not touch the reasoner or the store.")
async def health_check():
    return {"status": "healthy", "version": __version__}
