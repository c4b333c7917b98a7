"""Package endpoints.

GET /v1/packages                 - Catalog search (autocomplete)
GET /v1/packages/by-tags         - Packages sharing any of the given tags
GET /v1/packages/{name}          - Package detail (hydrated from npm on miss)
GET /v1/packages/{name}/presets  - Presets comparing the package
PUT /v1/packages/{name}/tags     - Replace the package's tags (authenticated)

Package names may contain '/' (scoped packages), so the sub-resource routes
are declared before the bare detail route.
"""

from fastapi import APIRouter, Depends, Query

from app.deps import get_caller, get_package_service, get_preset_service
from app.schemas import AssignTagsRequest, Package, PackageList, PresetList
from app.services.identity import CallerIdentity
from app.services.packages import DEFAULT_LIST_LIMIT, PackageService
from app.services.presets import PresetService

router = APIRouter()


@router.get("", response_model=PackageList)
async def search_packages(
    q: str = Query(default="", description="Name substring", max_length=214),
    limit: int = Query(default=DEFAULT_LIST_LIMIT),
    service: PackageService = Depends(get_package_service),
) -> PackageList:
    return await service.search_packages(q, limit)


@router.get("/by-tags", response_model=PackageList)
async def list_packages_by_tags(
    tag_ids: str = Query(default="", alias="tagIds", description="Comma-separated tag ids"),
    exclude: str | None = Query(default=None, description="Package to leave out"),
    limit: int = Query(default=DEFAULT_LIST_LIMIT),
    service: PackageService = Depends(get_package_service),
) -> PackageList:
    """Packages ranked by number of matching tags, then weekly downloads."""
    ids = [part for part in tag_ids.split(",") if part.strip()]
    return await service.list_packages_by_tags(ids, exclude_id=exclude or None, limit=limit)


@router.get("/{name:path}/presets", response_model=PresetList)
async def list_presets_for_package(
    name: str,
    service: PresetService = Depends(get_preset_service),
) -> PresetList:
    return await service.list_presets_for_package(name)


@router.put("/{name:path}/tags", response_model=Package)
async def assign_package_tags(
    name: str,
    request: AssignTagsRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: PackageService = Depends(get_package_service),
) -> Package:
    return await service.assign_package_tags(caller, name, request.tag_ids)


@router.get("/{name:path}", response_model=Package)
async def get_package(
    name: str,
    service: PackageService = Depends(get_package_service),
) -> Package:
    """Package detail; `hydrated` is false when the registry was unreachable."""
    return await service.get_package(name)
