"""Length and range checks shared by the core stores."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ..contracts.base import Error, ErrorCode, MIN_DIFFICULTY, MAX_DIFFICULTY


@dataclass(frozen=True)
class FieldLimits:
    """Upper bounds for free-text fields (characters)."""
    max_name_length: int = 100
    max_title_length: int = 200
    max_description_length: int = 2000
    max_category_length: int = 100
    max_evidence_url_length: int = 2048

    def __post_init__(self):
        for name, value in self.__dict__.items():
            if value < 1:
                raise ValueError(f"{name} must be positive")


def check_text(
    value: object,
    field_name: str,
    max_length: int,
    required: bool = False
) -> Optional[Error]:
    """Return an INVALID_PARAMETERS error if value is not an acceptable string."""
    if not isinstance(value, str):
        return Error(
            code=ErrorCode.INVALID_PARAMETERS,
            message=f"{field_name} must be a string",
            context=(("field", field_name),)
        )
    if required and not value.strip():
        return Error(
            code=ErrorCode.INVALID_PARAMETERS,
            message=f"{field_name} must not be empty",
            context=(("field", field_name),)
        )
    if len(value) > max_length:
        return Error(
            code=ErrorCode.INVALID_PARAMETERS,
            message=f"{field_name} exceeds {max_length} characters",
            context=(("field", field_name), ("length", str(len(value))))
        )
    return None


def check_difficulty(difficulty: object) -> Optional[Error]:
    if (
        isinstance(difficulty, bool)
        or not isinstance(difficulty, int)
        or not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY
    ):
        return Error(
            code=ErrorCode.INVALID_PARAMETERS,
            message=f"difficulty must be an integer in [{MIN_DIFFICULTY}, {MAX_DIFFICULTY}]",
            context=(("difficulty", str(difficulty)),)
        )
    return None
