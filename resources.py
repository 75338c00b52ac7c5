"""
Generic resource controller

Every portfolio collection is served by a ResourceController subclass that
declares its collection, schema, recognized list filters, sort order and
asset-bearing fields. The base class supplies list/get/create/update/delete/
toggle/progress; subclasses hook derived fields and uniqueness checks in
through `prepare` and `check_unique`.

Writes that replace or drop a stored file free the old file only after the
store accepted the new record, so a failed write never loses the asset the
record still points to.
"""

import typing
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence, Tuple, Type

from fastapi import Depends
from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pymongo.database import Database

from assets import AssetManager, StoredFile, get_asset_manager
from database import (
    count_documents,
    create_document,
    delete_document,
    find_by_id,
    find_document,
    get_db,
    get_documents,
    serialize,
    update_document,
)
from derived import clamp, parse_json, split_list, to_bool, to_int
from errors import NotFoundError, ValidationError, format_validation_errors

Payload = Dict[str, Any]
Files = Dict[str, List[Any]]


# =======
# Filters
# =======

@dataclass
class Filter:
    """Maps one query parameter onto an equality condition.

    kind:
      "equals"  - field == value
      "bool"    - field == value parsed as "true"/"false"
      "true"    - narrows to field == True only when the value is "true"
      "member"  - value is one element of an array field
    """

    field: str
    kind: str = "equals"
    ignore: Tuple[str, ...] = ()

    def build(self, raw: Any) -> Optional[Dict[str, Any]]:
        if raw is None or raw == "" or raw in self.ignore:
            return None
        if self.kind == "bool":
            value = to_bool(raw)
            return {self.field: value} if isinstance(value, bool) else None
        if self.kind == "true":
            return {self.field: True} if to_bool(raw) is True else None
        # Mongo matches a scalar against array elements, so "member" is plain equality
        return {self.field: raw}


# ========
# Coercion
# ========

def _unwrap(annotation: Any) -> Any:
    """Strip Optional[...] and Annotated[...] down to the core type."""
    while True:
        origin = typing.get_origin(annotation)
        if origin is typing.Annotated:
            annotation = typing.get_args(annotation)[0]
        elif origin is typing.Union:
            args = [a for a in typing.get_args(annotation) if a is not type(None)]
            if len(args) != 1:
                return annotation
            annotation = args[0]
        else:
            return annotation


def coerce_payload(schema: Type[BaseModel], payload: Payload) -> Payload:
    """Normalize form-encoded values against the schema's field types."""
    out = {}
    for name, value in payload.items():
        info = schema.model_fields.get(name)
        if info is None:
            continue
        annotation = _unwrap(info.annotation)
        origin = typing.get_origin(annotation)
        if annotation is bool:
            value = to_bool(value)
        elif annotation is int:
            value = to_int(value)
        elif origin in (list, List):
            (item_type,) = typing.get_args(annotation) or (Any,)
            if isinstance(item_type, type) and issubclass(item_type, BaseModel):
                value = parse_json(value)
            else:
                value = split_list(value)
        elif isinstance(annotation, type) and issubclass(annotation, BaseModel):
            value = parse_json(value)
        out[name] = value
    return out


def validate(schema: Type[BaseModel], data: Payload) -> Payload:
    try:
        return schema.model_validate(data).model_dump()
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e.errors()))


# ==========
# Controller
# ==========

class ResourceController:
    label: ClassVar[str] = "Resource"
    collection: ClassVar[str]
    schema: ClassVar[Type[BaseModel]]
    filters: ClassVar[Dict[str, Filter]] = {}
    sort: ClassVar[Sequence[Tuple[str, int]]] = (("createdAt", -1),)
    image_fields: ClassVar[Tuple[str, ...]] = ()
    gallery_fields: ClassVar[Tuple[str, ...]] = ()
    toggles: ClassVar[Tuple[str, ...]] = ()
    progress_field: ClassVar[Optional[str]] = None
    slug_lookup: ClassVar[bool] = False

    def __init__(self, db: Database, assets: AssetManager):
        self.db = db
        self.assets = assets

    # ---------
    # Hooks
    # ---------
    def prepare(self, data: Payload, existing: Optional[Payload]) -> None:
        """Fill derived fields in place. `data` holds only what will be written."""

    def check_unique(self, data: Payload, existing: Optional[Payload]) -> None:
        """Raise ConflictError when a write would break a uniqueness rule."""

    def not_found(self) -> NotFoundError:
        return NotFoundError(f"{self.label} not found")

    # ---------
    # Reads
    # ---------
    def build_query(self, params: Dict[str, Any]) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for param, flt in self.filters.items():
            condition = flt.build(params.get(param))
            if condition:
                query.update(condition)
        return query

    def list(self, params: Optional[Dict[str, Any]] = None) -> List[Payload]:
        query = self.build_query(params or {})
        docs = get_documents(self.db, self.collection, query, sort=self.sort)
        return [serialize(doc) for doc in docs]

    def find(self, identifier: str) -> Optional[Payload]:
        doc = None
        if self.slug_lookup:
            doc = find_document(self.db, self.collection, {"slug": identifier})
        if doc is None:
            doc = find_by_id(self.db, self.collection, identifier)
        return doc

    def resolve(self, identifier: str) -> Payload:
        doc = self.find(identifier)
        if doc is None:
            raise self.not_found()
        return doc

    def get(self, identifier: str) -> Payload:
        return serialize(self.resolve(identifier))

    # ---------
    # Writes
    # ---------
    def create(self, payload: Payload, files: Optional[Files] = None) -> Payload:
        data = validate(self.schema, coerce_payload(self.schema, payload))
        self.check_unique(data, None)
        self.prepare(data, None)

        stored = self.store_files(files)
        try:
            self.bind_files(data, stored, None, payload)
            doc = create_document(self.db, self.collection, data)
        except Exception:
            self.assets.discard(f for items in stored.values() for f in items)
            raise
        logger.info(f"Created {self.collection}/{doc['_id']}")
        return serialize(doc)

    def update(self, identifier: str, payload: Payload, files: Optional[Files] = None) -> Payload:
        existing = self.resolve(identifier)
        changes = coerce_payload(self.schema, payload)
        merged = validate(self.schema, {**existing, **changes})
        data = {name: merged[name] for name in changes}
        self.check_unique(data, existing)
        self.prepare(data, existing)

        stored = self.store_files(files)
        try:
            released = self.bind_files(data, stored, existing, payload)
            doc = update_document(self.db, self.collection, {"_id": existing["_id"]}, data) if data else existing
        except Exception:
            self.assets.discard(f for items in stored.values() for f in items)
            raise
        if doc is None:
            self.assets.discard(f for items in stored.values() for f in items)
            raise self.not_found()

        # Old files go only once the store holds the new references
        self.assets.unbind_all(released)
        logger.info(f"Updated {self.collection}/{existing['_id']} fields={sorted(data)}")
        return serialize(doc)

    def delete(self, identifier: str) -> Payload:
        existing = self.resolve(identifier)
        delete_document(self.db, self.collection, {"_id": existing["_id"]})
        self.assets.unbind_all(self.owned_paths(existing))
        logger.info(f"Deleted {self.collection}/{existing['_id']}")
        return {}

    def toggle(self, identifier: str, flag: str) -> Payload:
        if flag not in self.toggles:
            raise ValidationError(f"{flag} cannot be toggled on {self.collection}")
        existing = self.resolve(identifier)
        value = not bool(existing.get(flag, False))
        doc = update_document(self.db, self.collection, {"_id": existing["_id"]}, {flag: value})
        if doc is None:
            raise self.not_found()
        logger.info(f"Toggled {self.collection}/{existing['_id']} {flag}={value}")
        return serialize(doc)

    def update_progress(self, identifier: str, value: Any) -> Payload:
        if not self.progress_field:
            raise ValidationError(f"{self.collection} has no progress")
        progress = to_int(value)
        if not isinstance(progress, int) or isinstance(progress, bool):
            raise ValidationError("progress must be a number")
        existing = self.resolve(identifier)
        doc = update_document(self.db, self.collection, {"_id": existing["_id"]}, {self.progress_field: clamp(progress)})
        if doc is None:
            raise self.not_found()
        return serialize(doc)

    # ---------
    # Assets
    # ---------
    def store_files(self, files: Optional[Files]) -> Dict[str, List[StoredFile]]:
        stored: Dict[str, List[StoredFile]] = {}
        if not files:
            return stored
        try:
            for name in self.image_fields:
                uploads = files.get(name) or []
                if uploads:
                    stored[name] = [self.assets.save(uploads[0], name)]
            for name in self.gallery_fields:
                uploads = files.get(name) or []
                if uploads:
                    stored[name] = [self.assets.save(upload, name) for upload in uploads]
        except Exception:
            self.assets.discard(f for items in stored.values() for f in items)
            raise
        return stored

    def bind_files(
        self,
        data: Payload,
        stored: Dict[str, List[StoredFile]],
        existing: Optional[Payload],
        payload: Payload,
    ) -> List[str]:
        """Bind new uploads into `data`; return the paths that lose their owner."""
        released: List[str] = []
        for name in self.image_fields:
            if name in stored:
                self.assets.bind(data, name, stored[name][0])
                if existing and existing.get(name):
                    released.append(existing[name])
        for name in self.gallery_fields:
            if name in stored:
                current = list((existing or {}).get(name) or [])
                append = to_bool(payload.get("append" + name[0].upper() + name[1:])) is True
                data[name] = current
                new_paths = self.assets.bind_many(data, name, stored[name], append=append)
                released.extend(p for p in current if p not in new_paths)
        return released

    def owned_paths(self, doc: Payload) -> List[str]:
        paths = [doc.get(name) for name in self.image_fields if doc.get(name)]
        for name in self.gallery_fields:
            paths.extend(doc.get(name) or [])
        return paths

    # ---------
    # Helpers
    # ---------
    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        return count_documents(self.db, self.collection, query)


def controller_dependency(cls: Type[ResourceController]) -> Callable[..., ResourceController]:
    """FastAPI dependency building `cls` on the injected db and asset root."""
    def dependency(db: Database = Depends(get_db), assets: AssetManager = Depends(get_asset_manager)) -> ResourceController:
        return cls(db, assets)

    dependency.__name__ = f"get_{cls.collection}_controller"
    return dependency
