from datetime import datetime
from typing import Any, Optional, Type, TypeVar, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.core.exceptions import NotFoundError, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def serialize_value(value: Any) -> Any:
    """Recursively serialize non-JSON-serializable values"""
    if isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, ObjectId):
        return str(value)
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [serialize_value(item) for item in value]
    return value


def document_to_json(document: Optional[dict]) -> Optional[dict]:
    """Convert a MongoDB document to JSON, renaming _id to id"""
    if document is None:
        return None

    data = {k: serialize_value(v) for k, v in document.items() if k != "_id"}
    if "_id" in document:
        data["id"] = str(document["_id"])
    return data


def parse_model(model_cls: Type[ModelT], data: Union[ModelT, dict, None]) -> ModelT:
    """Validate raw input into model_cls, raising the domain ValidationError"""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data or {})
    except PydanticValidationError as e:
        errors = {
            ".".join(str(part) for part in err["loc"]) or "body": err["msg"]
            for err in e.errors()
        }
        fields = ", ".join(errors)
        raise ValidationError(f"Invalid or missing fields: {fields}", extra={"errors": errors})


def parse_object_id(value: str, entity: str = "Resource") -> ObjectId:
    """
    Parse a path identifier into an ObjectId.

    A malformed id can never match a document, so it is reported the same
    way as a missing one.
    """
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{entity} not found")
