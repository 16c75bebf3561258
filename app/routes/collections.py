"""
Collection endpoints.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.deps import get_services
from app.responses import to_response
from app.routes.paging import page_kwargs
from core.services.container import Services


router = APIRouter(prefix="/collections", tags=["collections"])


class CreateCollectionRequest(BaseModel):
    session_token: str
    name: str
    description: Optional[str] = None
    is_public: bool = True


class UpdateCollectionRequest(BaseModel):
    session_token: str
    collection_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None


class DeleteCollectionRequest(BaseModel):
    session_token: str
    collection_id: str


class MembershipRequest(BaseModel):
    session_token: str
    collection_id: str
    cat_id: str


@router.post("/create")
def create_collection(body: CreateCollectionRequest, services: Services = Depends(get_services)):
    result = services.collections.create_collection(
        body.session_token,
        body.name,
        body.description,
        body.is_public,
    )
    return to_response(result, success_status=201)


@router.get("/list")
def list_collections(
    session_token: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    result = services.collections.list_collections(session_token, username, **page_kwargs(limit, cursor))
    return to_response(result)


@router.get("/get")
def get_collection(
    collection_id: str = Query(...),
    session_token: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    result = services.collections.get_collection(collection_id, session_token, **page_kwargs(limit, cursor))
    return to_response(result)


@router.post("/update")
def update_collection(body: UpdateCollectionRequest, services: Services = Depends(get_services)):
    result = services.collections.update_collection(
        body.session_token,
        body.collection_id,
        name=body.name,
        description=body.description,
        is_public=body.is_public,
    )
    return to_response(result)


@router.post("/delete")
def delete_collection(body: DeleteCollectionRequest, services: Services = Depends(get_services)):
    return to_response(services.collections.delete_collection(body.session_token, body.collection_id))


@router.post("/addCat")
def add_cat(body: MembershipRequest, services: Services = Depends(get_services)):
    result = services.collections.add_cat_to_collection(body.session_token, body.collection_id, body.cat_id)
    return to_response(result)


@router.post("/removeCat")
def remove_cat(body: MembershipRequest, services: Services = Depends(get_services)):
    result = services.collections.remove_cat_from_collection(body.session_token, body.collection_id, body.cat_id)
    return to_response(result)
