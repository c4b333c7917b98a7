"""GET /v1/me - Caller identity and authored-preset stats."""

from fastapi import APIRouter, Depends

from app.deps import get_caller, get_preset_service
from app.schemas import MeResponse
from app.services.identity import CallerIdentity
from app.services.presets import PresetService

router = APIRouter()


@router.get("", response_model=MeResponse)
async def get_me(
    caller: CallerIdentity = Depends(get_caller),
    service: PresetService = Depends(get_preset_service),
) -> MeResponse:
    return await service.get_me(caller)
