from fastapi import APIRouter

from cloudapp.core.response import create_response

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return create_response(data={"status": "ok"})
