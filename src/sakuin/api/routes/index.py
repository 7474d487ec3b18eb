"""Index entry routes for the sakuin API.

POST /index accepts a multipart/form-data body with an ``object`` part and an
optional ``metadata`` part (a JSON object). The remaining routes address an
existing entry by id, either as a whole or one half at a time.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from sakuin.errors import InvalidContentTypeError, InvalidMetadataError, MissingObjectPartError
from sakuin.multipart import MultipartDecoder
from sakuin.service import IndexService
from sakuin.storage.models import Document

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Index"])

JSON_MEDIA_TYPE = "application/json"
OCTET_STREAM_MEDIA_TYPE = "application/octet-stream"


class IndexCreatedResponse(BaseModel):
    """Response body for POST /index."""

    id: str


class IndexEntryResponse(BaseModel):
    """Response body for GET /index/{entry_id}.

    The object is base64-encoded.
    """

    id: str
    object: str
    metadata: dict[str, Any]


def get_index_service(request: Request) -> IndexService:
    """Return the IndexService bound to the application."""
    service: IndexService = request.app.state.index_service
    return service


IndexServiceDep = Annotated[IndexService, Depends(get_index_service)]


def _decode_metadata(raw: bytes) -> Document:
    """Decode a metadata body that must hold a JSON object.

    Raises:
        InvalidMetadataError: If raw is not JSON or not a JSON object.
    """
    try:
        value = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidMetadataError(f"metadata is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise InvalidMetadataError("metadata must be a JSON object")
    return value


def _media_type(request: Request) -> str:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower()


@router.post("/index", response_model=IndexCreatedResponse)
async def create_entry(request: Request, service: IndexServiceDep) -> IndexCreatedResponse:
    """Index an object and its optional metadata under a new id.

    The body is decoded as it streams in; only the object and metadata parts
    are held in memory.

    Raises:
        InvalidContentTypeError, MissingBoundaryError: On a bad Content-Type.
        MalformedBodyError, InvalidMetadataError: On a bad body.
        MissingObjectPartError: If the body has no object part.
    """
    decoder = MultipartDecoder(request.headers.get("content-type", ""))
    async for chunk in request.stream():
        if chunk:
            decoder.feed(chunk)
    parts = decoder.finish()

    if parts.object is None:
        raise MissingObjectPartError()
    metadata = _decode_metadata(parts.metadata) if parts.metadata is not None else None

    result = await service.create(parts.object, metadata)
    logger.info(
        "Indexed entry id=%s size=%d metadata=%s",
        result.id,
        len(parts.object),
        metadata is not None,
    )
    return IndexCreatedResponse(id=result.id)


@router.get("/index/{entry_id}", response_model=IndexEntryResponse)
async def read_entry(entry_id: str, service: IndexServiceDep) -> IndexEntryResponse:
    """Return both halves of an entry."""
    entry = await service.read(entry_id)
    return IndexEntryResponse(
        id=entry.id,
        object=base64.b64encode(entry.object).decode("ascii"),
        metadata=entry.metadata,
    )


@router.delete("/index/{entry_id}", status_code=204)
async def delete_entry(entry_id: str, service: IndexServiceDep) -> Response:
    """Delete both halves of an entry."""
    await service.delete(entry_id)
    logger.info("Deleted entry id=%s", entry_id)
    return Response(status_code=204)


@router.get("/index/{entry_id}/object")
async def get_entry_object(entry_id: str, service: IndexServiceDep) -> Response:
    """Return the raw object bytes of an entry."""
    content = await service.get_object(entry_id)
    return Response(content=content, media_type=OCTET_STREAM_MEDIA_TYPE)


@router.put("/index/{entry_id}/object")
async def put_entry_object(
    entry_id: str, request: Request, service: IndexServiceDep
) -> Response:
    """Replace the object of an existing entry with the raw request body."""
    content = await request.body()
    await service.update_object(entry_id, content)
    logger.info("Updated object id=%s size=%d", entry_id, len(content))
    return Response(status_code=200)


@router.get("/index/{entry_id}/metadata")
async def get_entry_metadata(entry_id: str, service: IndexServiceDep) -> dict[str, Any]:
    """Return the metadata document of an entry."""
    return await service.get_metadata(entry_id)


@router.put("/index/{entry_id}/metadata")
async def put_entry_metadata(
    entry_id: str, request: Request, service: IndexServiceDep
) -> Response:
    """Merge a JSON object into the metadata of an existing entry.

    Raises:
        InvalidContentTypeError: If the body is not application/json.
        InvalidMetadataError: If the body is not a JSON object.
    """
    media_type = _media_type(request)
    if media_type != JSON_MEDIA_TYPE:
        raise InvalidContentTypeError(media_type)

    metadata = _decode_metadata(await request.body())
    await service.update_metadata(entry_id, metadata)
    logger.info("Updated metadata id=%s fields=%d", entry_id, len(metadata))
    return Response(status_code=200)
