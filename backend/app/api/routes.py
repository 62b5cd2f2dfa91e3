from fastapi import APIRouter

from app.api.notify import router as notify_router

router = APIRouter()

router.include_router(notify_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Airwave API"}
