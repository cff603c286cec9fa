from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from pms_core.errors import ValidationError


class RequestModel(BaseModel):
    """
    Base for every operation input.

    Unknown fields are rejected so that a misspelt key fails at the boundary
    instead of being silently ignored inside business logic.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)


class SnapshotModel(BaseModel):
    """Base for operation outputs, built from ORM rows."""

    model_config = ConfigDict(from_attributes=True)


R = TypeVar("R", bound=RequestModel)


def parse_request(model: Type[R], payload: Mapping[str, Any]) -> R:
    """
    Validate a raw mapping into a request model.

    Args:
        model: Request model class
        payload: Untrusted input (e.g. a decoded JSON body)

    Returns:
        The validated request

    Raises:
        ValidationError: With the pydantic error list under details["errors"]
    """
    try:
        return model.model_validate(dict(payload))
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model.__name__}",
            {
                "errors": [
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in e.errors()
                ]
            },
        ) from e
