"""
Read-only endpoints for the mobile home screen.
"""

import logging

from fastapi import APIRouter, Depends
from pymongo.database import Database

from database import get_db, get_document, get_documents, serialize_document
from errors import CatalogError, ServerError
from responses import OK, envelope
from schemas import ListenNow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mobile"])


@router.get("/listen-now")
def listen_now(db: Database = Depends(get_db)):
    try:
        logger.info("Getting listen now")
        items = []
        for entry in get_documents(db, "listennow", {}, sort=[("created_at", 1)]):
            data = serialize_document(entry)
            shelf = ListenNow.model_validate(data)
            category = get_document(db, "category", shelf.category) if shelf.category else None
            data["category"] = serialize_document(category)
            items.append(data)
        return envelope(OK, data=items, total=len(items))
    except CatalogError:
        raise
    except Exception as e:
        logger.exception("Listen now failed: %s", e)
        raise ServerError() from e
