"""
Outcome of a structured generation call.
A reply either decodes to the expected shape (Ok) or is Malformed; transport
failures are raised separately as AIError.
"""
from dataclasses import dataclass
from typing import Any, Dict, Generic, Type, TypeVar, Union
from pydantic import BaseModel, ValidationError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

@dataclass(frozen=True)
class Malformed:
    raw_text: str
    reason: str

ParseResult = Union[Ok[T], Malformed]


def validate_as(result: "ParseResult[Dict[str, Any]]", model: Type[M]) -> "ParseResult[M]":
    """
    Narrow an untyped JSON result to a pydantic model.
    Missing fields are filled by the model's defaults; a shape the model
    cannot coerce is reported as Malformed rather than raised.
    """
    if isinstance(result, Malformed):
        return result
    try:
        return Ok(model.model_validate(result.value))
    except ValidationError as e:
        return Malformed(raw_text=str(result.value)[:2000], reason=f"schema validation failed: {e.error_count()} error(s)")
