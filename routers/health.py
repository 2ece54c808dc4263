from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Liveness plus the number of registered forms."""
    return {"status": "ok", "forms": len(request.app.state.registry)}
