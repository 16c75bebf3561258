"""
Cat post, like and comment endpoints.
"""

from __future__ import annotations

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.deps import get_services
from app.responses import to_response
from app.routes.paging import page_kwargs
from core.errors import ValidationIssue
from core.images import decode_base64_image
from core.services.container import Services
from core.services.shared import _tool_error_payload


router = APIRouter(prefix="/cats", tags=["cats"])


# =============================================================================
# Schemas
# =============================================================================

class CreateCatRequest(BaseModel):
    session_token: str
    name: str
    image_base64: str
    content_type: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[Union[List[str], str]] = None
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None


class LikeRequest(BaseModel):
    session_token: str
    cat_id: str


class AddCommentRequest(BaseModel):
    session_token: str
    cat_id: str
    comment: str


class DeleteCommentRequest(BaseModel):
    session_token: str
    comment_id: str


# =============================================================================
# Cats
# =============================================================================

@router.post("/post")
def create_cat(body: CreateCatRequest, services: Services = Depends(get_services)):
    try:
        image, content_type = decode_base64_image(body.image_base64, body.content_type)
    except ValidationIssue as issue:
        return to_response(_tool_error_payload("create_cat", issue))

    result = services.cats.create_cat(
        body.session_token,
        body.name,
        image,
        content_type=content_type,
        tags=body.tags,
        description=body.description,
        latitude=body.location_latitude,
        longitude=body.location_longitude,
    )
    return to_response(result, success_status=201)


@router.get("")
@router.get("/list")
def list_cats(
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    session_token: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    result = services.cats.list_cats(
        username=username,
        session_token=session_token,
        **page_kwargs(limit, cursor),
    )
    return to_response(result)


@router.get("/search/tags")
def search_cats_by_tags(
    tags: str = Query(...),
    mode: str = Query("any"),
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    session_token: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    result = services.cats.search_cats(
        tags,
        mode=mode,
        session_token=session_token,
        **page_kwargs(limit, cursor),
    )
    return to_response(result)


@router.get("/get")
def get_cat(
    id: str = Query(...),
    session_token: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    return to_response(services.cats.get_cat(id, session_token))


@router.post("/like")
def like_cat(body: LikeRequest, services: Services = Depends(get_services)):
    return to_response(services.cats.like_cat(body.session_token, body.cat_id, "like"))


@router.post("/removeLike")
def remove_like(body: LikeRequest, services: Services = Depends(get_services)):
    return to_response(services.cats.like_cat(body.session_token, body.cat_id, "unlike"))


# =============================================================================
# Comments
# =============================================================================

@router.post("/comments/add")
def add_comment(body: AddCommentRequest, services: Services = Depends(get_services)):
    result = services.comments.create_comment(body.session_token, body.cat_id, body.comment)
    return to_response(result, success_status=201)


@router.get("/comments/list")
def list_comments(
    cat_id: str = Query(...),
    session_token: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    result = services.comments.list_comments(cat_id, session_token, **page_kwargs(limit, cursor))
    return to_response(result)


@router.post("/comments/delete")
def delete_comment(body: DeleteCommentRequest, services: Services = Depends(get_services)):
    return to_response(services.comments.delete_comment(body.session_token, body.comment_id))
