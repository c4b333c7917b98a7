"""Tag endpoints.

GET  /v1/tags       - All tags with package counts
GET  /v1/tags/{id}  - One tag
POST /v1/tags       - Create or update a tag (authenticated)
"""

from fastapi import APIRouter, Depends

from app.deps import get_caller, get_package_service
from app.schemas import CreateTagRequest, Tag, TagList
from app.services.identity import CallerIdentity
from app.services.packages import PackageService

router = APIRouter()


@router.get("", response_model=TagList)
async def list_tags(service: PackageService = Depends(get_package_service)) -> TagList:
    return await service.list_tags()


@router.get("/{tag_id}", response_model=Tag)
async def get_tag(tag_id: str, service: PackageService = Depends(get_package_service)) -> Tag:
    return await service.get_tag(tag_id)


@router.post("", response_model=Tag, status_code=201)
async def create_tag(
    request: CreateTagRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: PackageService = Depends(get_package_service),
) -> Tag:
    return await service.create_tag(caller, request.id, request.name, request.color)
