"""
Catalog route groups.

The artist, album, song and category endpoints only differ by collection,
schemas and a couple of per-resource hooks, so every group is produced by
``build_resource_router`` from a ``Resource`` description. Each handler body
is a single recovery boundary: ``CatalogError`` passes through untouched and
anything else is logged and answered with the fixed server-error envelope,
even when some relationship writes already went through.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, Optional, Tuple, Type

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from pymongo.database import Database

import audio
import storage
from database import (
    aggregate_documents,
    count_documents,
    get_db,
    get_document,
    get_documents,
    serialize_document,
)
from errors import CatalogError, NotFoundError, ServerError
from query_filters import (
    compile_query,
    group_pipeline,
    to_mongo_filter,
    to_mongo_projection,
)
from relations import populate, sync_created, sync_deleted, sync_updated
from responses import CREATED, OK, envelope
from schemas import (
    Album,
    AlbumUpdate,
    Artist,
    ArtistUpdate,
    Category,
    CategoryUpdate,
    Song,
    SongUpdate,
    field_type,
)

logger = logging.getLogger(__name__)

# (db, fields, existing document or None on create) -> fields to persist
PrepareHook = Callable[[Database, Dict[str, Any], Optional[Dict[str, Any]]], Dict[str, Any]]
DeleteHook = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class Resource:
    collection: str
    label: str
    create_schema: Type[BaseModel]
    update_schema: Type[BaseModel]
    prepare: Optional[PrepareHook] = None
    on_delete: Optional[DeleteHook] = None
    # fields an update may explicitly clear with null
    nullable: Tuple[str, ...] = field(default_factory=tuple)


def list_documents(
    db: Database,
    collection: str,
    params: Dict[str, str],
    schema: Optional[Type[BaseModel]] = None,
) -> Dict[str, Any]:
    """Run a compiled list query; returns the envelope fields beyond the status."""
    query = compile_query(params)
    field_types = partial(field_type, schema) if schema is not None else None

    if query.grouping is not None:
        data = aggregate_documents(db, collection, group_pipeline(query, field_types))
        return {"data": [serialize_document(d) for d in data], "total": len(data)}

    filter_q = to_mongo_filter(query.clauses, field_types)
    projection = to_mongo_projection(query.projection)
    total = count_documents(db, collection, filter_q)

    result: Dict[str, Any] = {}
    skip, limit = 0, None
    if query.pagination is not None:
        skip, limit = query.pagination.offset, query.pagination.perpage
        result.update(
            page=query.pagination.page,
            perpage=query.pagination.perpage,
            pagecounts=query.pagination.page_count(total),
        )

    docs = get_documents(
        db, collection, filter_q, limit=limit, projection=projection, sort=query.sort, skip=skip
    )
    result.update(data=[serialize_document(d) for d in docs], total=total)
    return result


def build_resource_router(resource: Resource) -> APIRouter:
    router = APIRouter(tags=[resource.collection])
    name = resource.label
    label = resource.label.capitalize()

    @router.post("/", status_code=201)
    def create_item(payload: resource.create_schema, db: Database = Depends(get_db)):
        try:
            logger.info("Creating %s", name)
            logger.info("Request body: %s", payload.model_dump())
            fields = payload.model_dump()
            if resource.prepare is not None:
                fields = resource.prepare(db, fields, None)
            document = sync_created(db, resource.collection, fields)
            return envelope(CREATED, data=serialize_document(document))
        except CatalogError:
            raise
        except Exception as e:
            logger.exception("Creating %s failed: %s", name, e)
            raise ServerError() from e

    @router.get("/")
    def list_items(request: Request, db: Database = Depends(get_db)):
        try:
            params = dict(request.query_params)
            logger.info("Getting %s list", name)
            logger.info("Request query: %s", params)
            result = list_documents(db, resource.collection, params, resource.create_schema)
            return envelope(OK, **result)
        except CatalogError:
            raise
        except Exception as e:
            logger.exception("Listing %s failed: %s", name, e)
            raise ServerError() from e

    @router.get("/{item_id}")
    def get_item(item_id: str, projection: Optional[str] = None, db: Database = Depends(get_db)):
        try:
            logger.info("Getting %s %s", name, item_id)
            document = get_document(db, resource.collection, item_id, to_mongo_projection(projection))
            if document is None:
                raise NotFoundError(f"{label} not found")
            return envelope(OK, data=populate(db, resource.collection, document))
        except CatalogError:
            raise
        except Exception as e:
            logger.exception("Getting %s %s failed: %s", name, item_id, e)
            raise ServerError() from e

    @router.put("/{item_id}")
    def update_item(item_id: str, payload: resource.update_schema, db: Database = Depends(get_db)):
        try:
            logger.info("Updating %s %s", name, item_id)
            logger.info("Request body: %s", payload.model_dump(exclude_unset=True))
            existing = get_document(db, resource.collection, item_id)
            if existing is None:
                raise NotFoundError(f"{label} not found")

            fields = {
                k: v
                for k, v in payload.model_dump(exclude_unset=True).items()
                if v is not None or k in resource.nullable
            }
            if resource.prepare is not None:
                fields = resource.prepare(db, fields, existing)

            document = sync_updated(db, resource.collection, item_id, fields)
            if document is None:
                raise NotFoundError(f"{label} not found")
            return envelope(OK, data=serialize_document(document))
        except CatalogError:
            raise
        except Exception as e:
            logger.exception("Updating %s %s failed: %s", name, item_id, e)
            raise ServerError() from e

    @router.delete("/{item_id}", status_code=204)
    def delete_item(item_id: str, db: Database = Depends(get_db)):
        try:
            logger.info("Deleting %s %s", name, item_id)
            if not sync_deleted(db, resource.collection, item_id, resource.on_delete):
                raise NotFoundError(f"{label} not found")
            return Response(status_code=204)
        except CatalogError:
            raise
        except Exception as e:
            logger.exception("Deleting %s %s failed: %s", name, item_id, e)
            raise ServerError() from e

    return router


# ---------- PER-RESOURCE HOOKS ----------

def prepare_song(db: Database, fields: Dict[str, Any], existing: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Check the referenced artist and probe the audio duration, before anything is written."""
    artist_id = fields.get("artistid")
    if artist_id and get_document(db, "artist", artist_id) is None:
        raise NotFoundError("Artist not found")

    url = fields.get("url")
    if url and (existing is None or url != existing.get("url")):
        fields["duration"] = audio.song_duration(url)
    return fields


def remove_category_wallpaper(document: Dict[str, Any]) -> None:
    storage.delete_public_file(document.get("wallpaper"))


ARTISTS = Resource("artist", "artist", Artist, ArtistUpdate)
ALBUMS = Resource("album", "album", Album, AlbumUpdate)
SONGS = Resource("song", "song", Song, SongUpdate, prepare=prepare_song, nullable=("artistid",))
CATEGORIES = Resource(
    "category", "category", Category, CategoryUpdate, on_delete=remove_category_wallpaper
)

artists_router = build_resource_router(ARTISTS)
albums_router = build_resource_router(ALBUMS)
songs_router = build_resource_router(SONGS)
categories_router = build_resource_router(CATEGORIES)
