from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import BadRequest
from .models import CATEGORIES


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    Only description and category are accepted; id and done belong to the store.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Buy groceries",
                "category": "shopping",
            }
        }
    )

    description: str = Field(..., description="Text describing the task", min_length=1)
    category: str = Field(..., description="Label of the todo item", min_length=1)

    def to_record(self) -> Dict[str, Any]:
        """Return the document submitted to the store."""
        return {"description": self.description, "category": self.category}


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "description": "Buy groceries",
                "category": "shopping",
                "done": False,
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    description: str = Field(..., description="Text describing the task")
    category: str = Field(..., description="Label of the todo item")
    done: bool = Field(default=False, description="Completion status flag")


class MessageOut(BaseModel):
    message: str


# PUBLIC_INTERFACE
def validate_create_payload(body: Any, strict_categories: bool = False) -> TodoCreate:
    """
    Turn an untyped request body into a TodoCreate, or raise BadRequest.

    Checks run in a fixed order and stop at the first failure:
    body presence, description, category, category membership (strict only),
    then field types. A JSON value that is not an object carries no fields.
    """
    if body is None:
        raise BadRequest("No body!")

    fields: Mapping[str, Any] = body if isinstance(body, Mapping) else {}

    if not fields.get("description"):
        raise BadRequest("No description!")

    category = fields.get("category")
    if not category:
        raise BadRequest("No category!")

    if strict_categories and category not in CATEGORIES:
        raise BadRequest("Invalid category!")

    try:
        return TodoCreate.model_validate(
            {"description": fields["description"], "category": category}
        )
    except ValidationError as e:
        raise BadRequest("Invalid body!") from e
