"""
Registry admin endpoints: POST /add, GET /{sheet_id}
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request

from models.base import AddFormRequest
from services.registry_service import RegistryController
from utils import config
from utils.limiter import limiter

router = APIRouter(tags=["registry"])


def get_registry_controller(request: Request) -> RegistryController:
    return request.app.state.registry_controller


@router.post("/add", status_code=201)
@limiter.limit(config.ADMIN_RATE_LIMIT)
async def add_form(
    request: Request,
    payload: Optional[AddFormRequest] = Body(None),
    controller: RegistryController = Depends(get_registry_controller),
):
    payload = payload or AddFormRequest()
    secret = request.headers.get("x-admin-secret") or payload.secret
    form_id = await controller.create(secret, payload.entry_fields(), payload.id)
    return {"webhook": f"/{form_id}"}


@router.get("/{sheet_id}")
async def lookup_form_by_sheet(sheet_id: str, controller: RegistryController = Depends(get_registry_controller)):
    return {"id": controller.reverse_lookup(sheet_id)}
