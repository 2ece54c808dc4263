"""
FormSG webhook endpoint: POST /{form_id}
"""

from fastapi import APIRouter, Depends, Request

from services.ingestion_service import IngestionController
from utils import config
from utils.formsg_crypto import SIGNATURE_HEADER

router = APIRouter(tags=["webhooks"])


def get_ingestion(request: Request) -> IngestionController:
    return request.app.state.ingestion


def signed_uri(request: Request) -> str:
    """The URI FormSG signed: scheme + Host header + the path and query exactly as received."""
    host = request.headers.get("host") or request.url.netloc
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.scope.get("query_string") or b""
    if query:
        path = f"{path}?{query.decode('latin-1')}"
    return f"{config.WEBHOOK_URI_SCHEME}://{host}{path}"


@router.post("/{form_id}")
async def receive_submission(form_id: str, request: Request, ingestion: IngestionController = Depends(get_ingestion)):
    # Body is read raw: the signature is checked before it is parsed
    raw_body = await request.body()
    await ingestion.handle(form_id, request.headers.get(SIGNATURE_HEADER), signed_uri(request), raw_body)
    return {"message": "OK"}
