"""
Structured-output extraction for inference responses.

The inference service returns free text. Every call site that needs structure
goes through ``parse_structured`` so the "no structured answer" path behaves
the same everywhere: it is a value, never an exception.
"""

import json
from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

T = TypeVar("T")

_decoder = json.JSONDecoder()


class ParseResult(BaseModel, Generic[T]):
    """Either a parsed value or the reason nothing usable was found."""
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def find_json(text: str):
    """Yield every top-level JSON object/array embedded in ``text``, in order."""
    index = 0
    length = len(text)
    while index < length:
        starts = [pos for pos in (text.find("{", index), text.find("[", index)) if pos != -1]
        if not starts:
            return
        start = min(starts)
        try:
            value, end = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            index = start + 1
            continue
        yield value
        index = end


def parse_structured(text: Optional[str], shape: Type[T]) -> ParseResult:
    """Locate the first JSON substring in ``text`` that validates as ``shape``."""
    if not text or not text.strip():
        return ParseResult(error="Empty response")

    adapter = TypeAdapter(shape)
    first_error: Optional[str] = None
    found_any = False

    for candidate in find_json(text):
        found_any = True
        try:
            return ParseResult(value=adapter.validate_python(candidate))
        except ValidationError as e:
            if first_error is None:
                first_error = f"JSON did not match expected shape: {e.error_count()} validation error(s)"

    if not found_any:
        return ParseResult(error="No JSON object or array found in response")
    return ParseResult(error=first_error)

