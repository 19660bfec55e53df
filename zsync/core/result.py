"""Result type for explicit error handling.

Every remote or filesystem step of a release sync returns a Result instead of
raising, so the orchestrator can decide in one place whether a failure needs
compensation.

Usage:
    def parse_draft_id(link: str) -> Result[str, str]:
        tail = link.rstrip("/").rsplit("/", 1)[-1]
        if not tail:
            return Err(f"no identifier in {link}")
        return Ok(tail)

    match parse_draft_id(url):
        case Ok(draft_id):
            print(f"draft: {draft_id}")
        case Err(error):
            print(f"error: {error}")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful result.

    Attributes:
        value: The success value.
    """

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """A failed result.

    Attributes:
        error: The error value.
    """

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result: TypeAlias = Union[Ok[T], Err[E]]
