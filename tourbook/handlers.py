from bson import ObjectId
from pydantic import ValidationError
from pymongo import ReturnDocument

from .database import get_db
from .errors import AppError, handle_validation_error
from .features import VERSION_FIELD, APIFeatures
from .utils import normalize_id, to_object_id

NOT_FOUND_MESSAGE = "No document found with that ID"


class Resource:
    """A collection plus the schema and read rules of its documents."""

    def __init__(
        self,
        name,
        model,
        update_model=None,
        hidden=(),
        refs=(),
        casts=None,
        base_filter=None,
        virtuals=None,
    ):
        self.name = name
        self.model = model
        self.update_model = update_model
        self.hidden = tuple(hidden)
        self.refs = tuple(refs)
        self.casts = casts or {}
        self.base_filter = dict(base_filter or {})
        self.virtuals = virtuals

    @property
    def collection(self):
        return get_db()[self.name]

    def default_projection(self):
        return {field: 0 for field in (VERSION_FIELD,) + self.hidden}

    def by_id(self, doc_id):
        return {"_id": to_object_id(doc_id), **self.base_filter}

    def to_storage(self, data):
        """Store reference fields as ObjectIds."""
        stored = dict(data)
        for ref in self.refs:
            value = stored.get(ref)
            if isinstance(value, list):
                stored[ref] = [ObjectId(v) for v in value]
            elif isinstance(value, str):
                stored[ref] = ObjectId(value)
        return stored

    def validate(self, payload):
        return self.model.model_validate(payload).model_dump(by_alias=True)

    def validate_patch(self, existing, patch):
        """Validate ``patch`` and return the document fields it sets.

        Without a dedicated update schema the patch is validated merged into the
        existing document so rules spanning several fields still hold. Only
        failures on patched fields, or on the document as a whole, are reported;
        stored values the patch leaves alone are not re-checked.
        """
        model = self.update_model or self.model
        fields = {name for name, field in model.model_fields.items() if name in patch or field.alias in patch}
        if self.update_model is None:
            validated = self._validate_merged({**existing, **patch}, fields)
        else:
            validated = model.model_validate(patch)
        return validated.model_dump(by_alias=True, include=fields)

    def _validate_merged(self, merged, fields):
        keys = set(fields) | {self.model.model_fields[name].alias for name in fields}
        try:
            return self.model.model_validate(merged)
        except ValidationError as err:
            errors = err.errors()
        reported = [error for error in errors if not error["loc"] or error["loc"][0] in keys]
        if reported:
            raise handle_validation_error(reported)
        stale = {error["loc"][0] for error in errors}
        return self.model.model_validate({key: value for key, value in merged.items() if key not in stale})

    def serialize(self, doc):
        if doc is None:
            return None
        doc = {key: value for key, value in doc.items() if key not in self.hidden and key != VERSION_FIELD}
        if self.virtuals is not None:
            doc.update(self.virtuals(doc))
        doc = normalize_id(doc)
        if "_id" in doc:
            doc["id"] = doc["_id"]
        return doc


def get_all(resource, query_string, parent_filter=None):
    base_filter = {**resource.base_filter, **(parent_filter or {})}
    features = (
        APIFeatures(query_string, base_filter=base_filter, casts=resource.casts, hidden=resource.hidden)
        .filter()
        .sort()
        .limit_fields()
        .paginate()
    )
    return list(features.find(resource.collection))


def get_one(resource, doc_id):
    doc = resource.collection.find_one(resource.by_id(doc_id), resource.default_projection())
    if doc is None:
        raise AppError(NOT_FOUND_MESSAGE, 404)
    return doc


def create_one(resource, payload, prepare=None):
    data = resource.validate(payload)
    if prepare is not None:
        data = prepare(data)
    data = resource.to_storage(data)
    data[VERSION_FIELD] = 0
    result = resource.collection.insert_one(data)
    data["_id"] = result.inserted_id
    return data


def update_one(resource, doc_id, patch):
    query = resource.by_id(doc_id)
    existing = resource.collection.find_one(query)
    if existing is None:
        raise AppError(NOT_FOUND_MESSAGE, 404)
    changes = resource.to_storage(resource.validate_patch(normalize_id(existing), patch))
    update = {"$inc": {VERSION_FIELD: 1}}
    if changes:
        update["$set"] = changes
    doc = resource.collection.find_one_and_update(
        query, update, projection=resource.default_projection(), return_document=ReturnDocument.AFTER
    )
    if doc is None:
        raise AppError(NOT_FOUND_MESSAGE, 404)
    return doc


def delete_one(resource, doc_id):
    doc = resource.collection.find_one_and_delete(resource.by_id(doc_id))
    if doc is None:
        raise AppError(NOT_FOUND_MESSAGE, 404)
    return doc
