from __future__ import annotations

from typing import Literal, Tuple, TypedDict, get_args

Category = Literal["shopping", "learning", "hobby"]

CATEGORIES: Tuple[Category, ...] = get_args(Category)


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A persisted Todo document as returned by the persistence gateway.

    Fields:
    - id: Unique integer identifier assigned by the store
    - description: Non-empty task text
    - category: Label of the todo; a Category under the strict policy, any
      non-empty label under the lenient one
    - done: Completion flag, defaulted to False by the store
    """

    id: int
    description: str
    category: str
    done: bool
