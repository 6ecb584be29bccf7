"""
Response models - Award Assessment Platform
app/models/response.py

A stored answer holds exactly one value. The value is a tagged union
discriminated by ``kind`` so callers never sniff Python types at runtime.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.core.exceptions import SubmissionValidationException
from app.models.enumerations import InputType
from app.models.question import Question


def _parse_decimal(text: str) -> Optional[Decimal]:
    try:
        value = Decimal(text.strip().replace(",", "."))
    except (InvalidOperation, AttributeError):
        return None
    return value if value.is_finite() else None


class TextValue(BaseModel):
    kind: Literal["text"] = "text"
    text: str

    def is_empty(self) -> bool:
        return not self.text.strip()

    def as_text(self) -> str:
        return self.text

    def as_number(self) -> Optional[Decimal]:
        return _parse_decimal(self.text)


class NumericValue(BaseModel):
    kind: Literal["numeric"] = "numeric"
    number: float

    def is_empty(self) -> bool:
        return False

    def as_text(self) -> str:
        return str(self.number)

    def as_number(self) -> Optional[Decimal]:
        return Decimal(str(self.number))


class BooleanValue(BaseModel):
    kind: Literal["boolean"] = "boolean"
    flag: bool

    def is_empty(self) -> bool:
        return False

    def as_text(self) -> str:
        return "true" if self.flag else "false"

    def as_number(self) -> Optional[Decimal]:
        return Decimal("1") if self.flag else Decimal("0")


class ArrayValue(BaseModel):
    kind: Literal["array"] = "array"
    items: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(str(i).strip() for i in self.items)

    def as_text(self) -> str:
        return ", ".join(self.items)

    def as_number(self) -> Optional[Decimal]:
        return None


class LinkedAnswer(BaseModel):
    """Answer paired with an evidence link (uploaded file or website)."""

    kind: Literal["linked"] = "linked"
    answer: str = ""
    url: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.answer.strip() and not (self.url or "").strip()

    def as_text(self) -> str:
        return self.answer

    def as_number(self) -> Optional[Decimal]:
        return _parse_decimal(self.answer)


ResponseValue = Annotated[
    Union[TextValue, NumericValue, BooleanValue, ArrayValue, LinkedAnswer],
    Field(discriminator="kind"),
]

_TRUE_WORDS = {"true", "yes", "ya", "1"}
_FALSE_WORDS = {"false", "no", "tidak", "0"}


def parse_response_value(raw: Any, question: Question):
    """
    Convert a raw answer payload into the ResponseValue for ``question``.

    Accepts the tagged form (``{"kind": ...}``), the legacy column form
    (``textValue``/``numericValue``/``booleanValue``/``arrayValue``), the
    ``{answer, url}`` pair and plain scalars/lists.

    Returns:
        ResponseValue, or None when the answer was cleared

    Raises:
        SubmissionValidationException: value cannot be represented for the
            question's input type
    """
    if raw is None:
        return None

    if isinstance(raw, dict):
        if "kind" in raw:
            return _TAGGED.get(raw["kind"], TextValue).model_validate(raw)
        if "answer" in raw or "url" in raw:
            return LinkedAnswer(answer=str(raw.get("answer") or ""), url=raw.get("url") or None)
        for key in ("textValue", "numericValue", "booleanValue", "arrayValue", "value"):
            if raw.get(key) is not None:
                return parse_response_value(raw[key], question)
        return None

    if question.needs_url:
        return LinkedAnswer(answer=_scalar_text(raw))

    input_type = question.input_type

    if input_type == InputType.NUMERIC:
        if isinstance(raw, bool):
            raise _invalid(question, "must be a number")
        if isinstance(raw, (int, float)):
            return NumericValue(number=float(raw))
        number = _parse_decimal(str(raw))
        if number is None:
            if not str(raw).strip():
                return None
            raise _invalid(question, "must be a number")
        return NumericValue(number=float(number))

    if input_type == InputType.BOOLEAN:
        if isinstance(raw, bool):
            return BooleanValue(flag=raw)
        word = str(raw).strip().lower()
        if word in _TRUE_WORDS:
            return BooleanValue(flag=True)
        if word in _FALSE_WORDS:
            return BooleanValue(flag=False)
        raise _invalid(question, "must be yes or no")

    if input_type == InputType.CHECKBOX:
        items = raw if isinstance(raw, (list, tuple)) else [raw]
        return ArrayValue(items=[_scalar_text(i) for i in items])

    if isinstance(raw, (list, tuple)):
        return ArrayValue(items=[_scalar_text(i) for i in raw])
    if isinstance(raw, bool):
        return BooleanValue(flag=raw)
    if isinstance(raw, (int, float)):
        return NumericValue(number=float(raw))
    return TextValue(text=str(raw))


_TAGGED = {
    "text": TextValue,
    "numeric": NumericValue,
    "boolean": BooleanValue,
    "array": ArrayValue,
    "linked": LinkedAnswer,
}


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _invalid(question: Question, reason: str) -> SubmissionValidationException:
    return SubmissionValidationException(
        [question.id], message=f"Answer to question {question.id} {reason}"
    )


class Response(BaseModel):
    """
    Stored answer for one (session, question) pair.
    """

    session_id: int = Field(..., description="Owning session")
    question_id: int = Field(..., description="Answered question")
    value: Optional[ResponseValue] = Field(default=None, description="The answer, if any")
    is_draft: bool = Field(default=True, description="Auto-saved, not yet confirmed")
    is_complete: bool = Field(default=False, description="Confirmed by a section save")
    is_skipped: bool = Field(default=False, description="Explicitly skipped")
    auto_save_version: int = Field(default=0, ge=0, description="Version of the last applied write")
    time_spent_seconds: int = Field(default=0, ge=0, description="Accumulated time on the question")
    first_answered_at: Optional[datetime] = None
    last_modified_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finalized_at: Optional[datetime] = None

    def has_answer(self) -> bool:
        return not self.is_skipped and self.value is not None and not self.value.is_empty()

    class Config:
        from_attributes = True


class AnswerRequest(BaseModel):
    """
    Single auto-save / answer write.
    """

    question_id: int = Field(..., description="Question being answered")
    value: Any = Field(default=None, description="Raw answer payload")
    is_draft: bool = Field(default=True)
    is_complete: bool = Field(default=False)
    is_skipped: bool = Field(default=False)
    time_spent: int = Field(default=0, ge=0, description="Seconds spent since the last write")
    auto_save_version: Optional[int] = Field(
        default=None,
        ge=1,
        description="Version this write produces; replays of an applied version are ignored",
    )


class BatchAnswerRequest(BaseModel):
    """
    Section save: several answers written together.
    """

    answers: List[AnswerRequest] = Field(..., min_length=1)
