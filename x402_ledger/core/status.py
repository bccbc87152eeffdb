"""
Status and classification enums.

Closed taxonomies for event outcomes, agent kinds and service categories,
plus strict parsing from free text.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Type, TypeVar, Union

from .errors import ValidationError


class UsageStatus(Enum):
    """Outcome of a paid request, seen from the seller side."""
    SUCCESS = "SUCCESS"                    # Payment completed and resource served
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"  # 402 issued
    VERIFY_FAILED = "VERIFY_FAILED"
    SETTLE_FAILED = "SETTLE_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class SpendingStatus(Enum):
    """Outcome of an outbound payment, seen from the buyer side."""
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    REJECTED = "REJECTED"
    REFUNDED = "REFUNDED"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"  # 402 received, payment not yet initiated


class AgentType(Enum):
    """Kind of agent making a request."""
    CLAUDE = "CLAUDE"
    GPT = "GPT"
    GEMINI = "GEMINI"
    CUSTOM = "CUSTOM"
    UNKNOWN = "UNKNOWN"


class ServiceCategory(Enum):
    """Categories of external services a buyer pays for."""
    AI_LANGUAGE_MODEL = "AI_LANGUAGE_MODEL"
    AI_IMAGE_GENERATION = "AI_IMAGE_GENERATION"
    AI_VOICE = "AI_VOICE"
    AI_VIDEO = "AI_VIDEO"
    DATA_API = "DATA_API"
    STORAGE = "STORAGE"
    COMPUTE = "COMPUTE"
    ANALYTICS = "ANALYTICS"
    BLOCKCHAIN = "BLOCKCHAIN"
    OTHER = "OTHER"


E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class ParseResult(Generic[E]):
    """Tagged result of parsing an enum from text.

    Exactly one of ``value`` and ``error`` is set.
    """
    value: Optional[E] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> E:
        """Return the parsed value or raise the captured ValidationError."""
        if self.error is not None:
            raise self.error
        return self.value


def parse_enum(enum_cls: Type[E], raw: Union[str, E, None], field: str) -> ParseResult[E]:
    """Strictly parse ``raw`` into a member of ``enum_cls``.

    Matching is case-insensitive on the member name. Nothing is coerced:
    blank, missing or unknown input yields an error result.

    Args:
        enum_cls: Target enum type
        raw: Member instance or its name as text
        field: Field name reported in the error

    Returns:
        ParseResult holding either the member or a ValidationError
    """
    if isinstance(raw, enum_cls):
        return ParseResult(value=raw)
    if isinstance(raw, Enum):
        return ParseResult(
            error=ValidationError(field, f"{raw} is not a {enum_cls.__name__}")
        )
    if raw is None or not isinstance(raw, str) or not raw.strip():
        return ParseResult(error=ValidationError(field, "a value is required"))

    try:
        return ParseResult(value=enum_cls[raw.strip().upper()])
    except KeyError:
        valid = [member.name for member in enum_cls]
        return ParseResult(
            error=ValidationError(field, f"'{raw}' is not one of: {valid}")
        )


def require_enum(enum_cls: Type[E], raw: Union[str, E, None], field: str) -> E:
    """Parse ``raw`` into ``enum_cls`` or raise ValidationError."""
    return parse_enum(enum_cls, raw, field).unwrap()


def optional_enum(enum_cls: Type[E], raw: Union[str, E, None], field: str) -> Optional[E]:
    """Like require_enum but lets a missing value through as None."""
    if raw is None:
        return None
    return require_enum(enum_cls, raw, field)
