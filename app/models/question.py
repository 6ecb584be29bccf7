from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from typing import Optional, List

from app.models.enumerations import InputType, ScoreType


class QuestionOption(BaseModel):
    """
    One selectable option of a choice question.
    """

    id: int = Field(..., description="Option identifier")
    text: str = Field(..., description="Label shown to the participant")
    value: str = Field(..., description="Stored value when selected")


class Question(BaseModel):
    """
    Catalog question as assigned to a group questionnaire.
    """

    id: int = Field(..., description="Question identifier")
    group_id: Optional[int] = Field(default=None, description="Group (nomination) the question belongs to")
    text: str = Field(..., min_length=1, description="Question text")
    description: Optional[str] = Field(default=None, description="Help text")
    input_type: InputType = Field(..., description="Input widget / value type")
    is_required: bool = Field(default=False, description="Must be answered before submission")
    options: List[QuestionOption] = Field(default_factory=list, description="Ordered options for choice questions")
    section_title: str = Field(default="", description="Section heading")
    subsection: Optional[str] = Field(default=None, description="Subsection heading")
    order_number: int = Field(default=0, description="Ordering within the questionnaire")
    category_id: Optional[int] = Field(default=None, description="Scoring category, if scored")
    needs_url: bool = Field(default=False, description="Answer must be paired with a corroborating link")

    class Config:
        from_attributes = True


class CategoryBase(BaseModel):
    """
    Base Pydantic model for a scoring Category.
    """

    name: str = Field(..., min_length=1, max_length=255, description="Unique category name")
    description: Optional[str] = Field(default=None, max_length=1000, description="Category description")
    weight: float = Field(default=1.0, ge=0, description="Multiplier applied to raw scores")
    min_value: float = Field(default=0.0, description="Lower bound of the expected range")
    max_value: float = Field(default=100.0, description="Upper bound of the expected range")
    score_type: ScoreType = Field(default=ScoreType.NUMBER, description="How the raw value is interpreted")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name must not be blank")
        return v


class CategoryCreate(CategoryBase):
    """
    Model for creating a new category.
    """
    pass


class CategoryUpdate(BaseModel):
    """
    Model for partial category updates.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    weight: Optional[float] = Field(default=None, ge=0)
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    score_type: Optional[ScoreType] = None


class Category(CategoryBase):
    """
    Category as stored and returned by the API.
    """

    id: int = Field(..., description="Category identifier")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Record creation timestamp (UTC)"
    )

    @property
    def actual_min(self) -> float:
        return min(self.min_value, self.max_value)

    @property
    def actual_max(self) -> float:
        return max(self.min_value, self.max_value)

    class Config:
        from_attributes = True
