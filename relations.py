"""
Bidirectional reference maintenance between catalog collections.

Every association is declared once in ``LINKS`` as a pair of sides. Both
sides keep a denormalized copy of the association (a list of ids, or a
single id for the "one" end of a one-to-many), and this module keeps the two
copies symmetric around every create, update and delete:

    create: save owner -> attach
    update: detach -> overwrite owner -> attach
    delete: detach -> remove owner

Each counterpart is written separately and sequentially. There is no
rollback: a failure part-way leaves the earlier writes in place and the
caller reports a plain server error.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from pymongo.database import Database

from database import (
    create_document,
    delete_document,
    get_document,
    serialize_document,
    to_object_id,
    to_object_ids,
    update_document,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Side:
    collection: str
    field: str
    many: bool = True


@dataclass(frozen=True)
class Link:
    left: Side
    right: Side


@dataclass(frozen=True)
class Relation:
    """One link seen from the owner's collection."""

    owner: str
    field: str
    many: bool
    counterpart: str
    back_field: str
    back_many: bool


LINKS = (
    Link(Side("artist", "songs"), Side("song", "artistid", many=False)),
    Link(Side("album", "songs"), Side("song", "albums")),
    Link(Side("album", "categories"), Side("category", "albums")),
    Link(Side("category", "songs"), Side("song", "categories")),
)


def relations_for(kind: str) -> Iterator[Relation]:
    for link in LINKS:
        for own, other in ((link.left, link.right), (link.right, link.left)):
            if own.collection == kind:
                yield Relation(
                    owner=own.collection,
                    field=own.field,
                    many=own.many,
                    counterpart=other.collection,
                    back_field=other.field,
                    back_many=other.many,
                )


def referenced_ids(relation: Relation, document: Dict[str, Any]) -> List[str]:
    value = document.get(relation.field)
    if not value:
        return []
    if relation.many:
        return [str(v) for v in value]
    return [str(value)]


def _unlink(database: Database, collection: str, doc_id: Any, field: str, many: bool, ref_id: str) -> None:
    if many:
        update = {"$pull": {field: ref_id}}
    else:
        update = {"$set": {field: None}}
    database[collection].update_one({"_id": doc_id}, update)


def detach(database: Database, kind: str, owner_id: str) -> None:
    """Remove ``owner_id`` from every counterpart that references it."""
    for relation in relations_for(kind):
        counterparts = list(database[relation.counterpart].find({relation.back_field: owner_id}, {"_id": 1}))
        for counterpart in counterparts:
            logger.debug(
                "Detaching %s %s from %s %s.%s",
                kind, owner_id, relation.counterpart, counterpart["_id"], relation.back_field,
            )
            _unlink(
                database, relation.counterpart, counterpart["_id"],
                relation.back_field, relation.back_many, owner_id,
            )


def attach(database: Database, kind: str, owner_id: str, document: Dict[str, Any]) -> None:
    """Add ``owner_id`` to the back field of every counterpart the document references."""
    for relation in relations_for(kind):
        ids = to_object_ids(referenced_ids(relation, document))
        if not ids:
            continue
        counterparts = list(database[relation.counterpart].find({"_id": {"$in": ids}}))
        for counterpart in counterparts:
            if relation.back_many:
                database[relation.counterpart].update_one(
                    {"_id": counterpart["_id"]}, {"$addToSet": {relation.back_field: owner_id}}
                )
                continue

            previous = counterpart.get(relation.back_field)
            if previous and str(previous) != owner_id:
                # single-owner side moves: the old owner loses the reference
                old_owner = to_object_id(previous)
                if old_owner is not None:
                    _unlink(database, kind, old_owner, relation.field, relation.many, str(counterpart["_id"]))
            database[relation.counterpart].update_one(
                {"_id": counterpart["_id"]}, {"$set": {relation.back_field: owner_id}}
            )


def sync_created(database: Database, kind: str, data: Any) -> Dict[str, Any]:
    document = create_document(database, kind, data)
    attach(database, kind, str(document["_id"]), document)
    return document


def sync_updated(database: Database, kind: str, doc_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Detach, overwrite ``fields``, reload and re-attach. ``None`` when the id is unknown."""
    existing = get_document(database, kind, doc_id)
    if existing is None:
        return None
    owner_id = str(existing["_id"])

    detach(database, kind, owner_id)
    update_document(database, kind, owner_id, fields)
    document = get_document(database, kind, owner_id)
    attach(database, kind, owner_id, document)
    return document


def sync_deleted(
    database: Database,
    kind: str,
    doc_id: str,
    before_remove: Optional[Callable[[Dict[str, Any]], None]] = None,
) -> bool:
    existing = get_document(database, kind, doc_id)
    if existing is None:
        return False
    owner_id = str(existing["_id"])

    detach(database, kind, owner_id)
    if before_remove is not None:
        before_remove(existing)
    return delete_document(database, kind, owner_id)


def populate(database: Database, kind: str, document: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize ``document`` with its references replaced by the referenced documents."""
    data = serialize_document(document)
    for relation in relations_for(kind):
        if relation.field not in data:
            continue
        ids = to_object_ids(referenced_ids(relation, data))
        found = {
            str(doc["_id"]): serialize_document(doc)
            for doc in database[relation.counterpart].find({"_id": {"$in": ids}})
        }
        ordered = [found[str(oid)] for oid in ids if str(oid) in found]
        if relation.many:
            data[relation.field] = ordered
        else:
            data[relation.field] = ordered[0] if ordered else None
    return data
