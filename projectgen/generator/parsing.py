"""Strict decoding of model output into validated models.

``decode_model`` never assumes a shape: it locates the JSON object in the
raw completion, parses it, and validates it against a Pydantic model. The
result is tagged: either ``ok`` with a value, or a failure carrying a
``DecodeFailure`` kind and a message.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from projectgen.utils import truncate

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n(.*?)\n```\s*$", re.DOTALL)


class DecodeFailure(str, Enum):
    """Why a completion could not be decoded."""
    EMPTY = "empty"
    NO_JSON = "no_json"
    INVALID_JSON = "invalid_json"
    SCHEMA = "schema"


@dataclass(frozen=True)
class DecodeResult(Generic[ModelT]):
    value: Optional[ModelT] = None
    failure: Optional[DecodeFailure] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: ModelT) -> "DecodeResult[ModelT]":
        return cls(value=value)

    @classmethod
    def fail(cls, failure: DecodeFailure, error: str) -> "DecodeResult[ModelT]":
        return cls(failure=failure, error=error)


def extract_json_object(text: str) -> Optional[str]:
    """Return the outermost ``{...}`` span of *text*, unwrapping code fences."""
    stripped = text.strip()
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1).strip()
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start == -1 or end <= start:
        return None
    return stripped[start : end + 1]


def decode_model(text: str, model: type[ModelT]) -> DecodeResult[ModelT]:
    """Decode a raw completion into *model*.

    Args:
        text: The raw model output.
        model: The Pydantic model the output must satisfy.

    Returns:
        A ``DecodeResult`` holding either the validated value or the failure.
    """
    if not text or not text.strip():
        return DecodeResult.fail(DecodeFailure.EMPTY, "Model returned an empty response")

    candidate = extract_json_object(text)
    if candidate is None:
        return DecodeResult.fail(
            DecodeFailure.NO_JSON, f"No JSON object found in response: {truncate(text, 200)}"
        )

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return DecodeResult.fail(DecodeFailure.INVALID_JSON, f"Invalid JSON: {exc}")

    try:
        return DecodeResult.success(model.model_validate(data))
    except ValidationError as exc:
        issues = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return DecodeResult.fail(DecodeFailure.SCHEMA, f"Invalid model output: {issues}")
