from fastapi import APIRouter

from taskservice.api.endpoints.tasks import router as tasks_router

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


router.include_router(tasks_router)
