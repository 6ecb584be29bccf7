# tests/test_models.py

"""
Model Validation Tests - Tests for all Pydantic model validations
"""

import pytest
from pydantic import ValidationError

from app.core.exceptions import SubmissionValidationException
from app.models.enumerations import InputType, RubricDimension, SessionStatus
from app.models.question import Category, CategoryCreate, CategoryUpdate, Question
from app.models.ranking import DimensionScores, JuryScoreCreate
from app.models.response import (
    ArrayValue,
    BooleanValue,
    LinkedAnswer,
    NumericValue,
    Response,
    TextValue,
    parse_response_value,
)
from app.models.session import AdvanceRequest


def _question(input_type, **extra):
    return Question(id=1, text="Pertanyaan", input_type=input_type, **extra)


# ENUMERATION TESTS


class TestInputTypeEnum:
    """Tests for InputType and its legacy spellings."""

    def test_canonical(self):
        assert InputType("numeric") == InputType.NUMERIC

    @pytest.mark.parametrize("raw,expected", [
        ("numeric-open", InputType.NUMERIC),
        ("Multiple Choice", InputType.MULTIPLE_CHOICE),
        ("yes-no", InputType.BOOLEAN),
        ("upload-file", InputType.FILE_UPLOAD),
    ])
    def test_aliases(self, raw, expected):
        assert InputType(raw) == expected

    def test_unknown(self):
        with pytest.raises(ValueError):
            InputType("slider")

    def test_six_rubric_dimensions(self):
        assert len(RubricDimension) == 6


# RESPONSE VALUE TESTS


class TestParseResponseValue:
    """Raw payloads become exactly one tagged value."""

    def test_numeric_from_string(self):
        assert parse_response_value("1250,5", _question(InputType.NUMERIC)) == NumericValue(number=1250.5)

    def test_numeric_rejects_words(self):
        with pytest.raises(SubmissionValidationException) as exc:
            parse_response_value("seratus", _question(InputType.NUMERIC))
        assert exc.value.missing_question_ids == [1]

    def test_numeric_rejects_bool(self):
        with pytest.raises(SubmissionValidationException):
            parse_response_value(True, _question(InputType.NUMERIC))

    def test_blank_numeric_clears(self):
        assert parse_response_value("  ", _question(InputType.NUMERIC)) is None

    def test_none_clears(self):
        assert parse_response_value(None, _question(InputType.TEXT_OPEN)) is None

    @pytest.mark.parametrize("raw,flag", [("ya", True), ("Tidak", False), (True, True)])
    def test_boolean_words(self, raw, flag):
        assert parse_response_value(raw, _question(InputType.BOOLEAN)) == BooleanValue(flag=flag)

    def test_boolean_rejects_other(self):
        with pytest.raises(SubmissionValidationException):
            parse_response_value("mungkin", _question(InputType.BOOLEAN))

    def test_checkbox_single_value_becomes_list(self):
        assert parse_response_value("A", _question(InputType.CHECKBOX)) == ArrayValue(items=["A"])

    def test_legacy_column_form(self):
        value = parse_response_value({"textValue": None, "numericValue": 12}, _question(InputType.NUMERIC))
        assert value == NumericValue(number=12.0)

    def test_tagged_form(self):
        value = parse_response_value({"kind": "text", "text": "halo"}, _question(InputType.TEXT_SHORT))
        assert value == TextValue(text="halo")

    def test_needs_url_wraps_scalar(self):
        value = parse_response_value("Laporan tahunan", _question(InputType.TEXT_OPEN, needs_url=True))
        assert value == LinkedAnswer(answer="Laporan tahunan")

    def test_linked_number(self):
        assert LinkedAnswer(answer="42,5").as_number() is not None


class TestResponseModel:
    """has_answer treats skipped and empty answers as missing."""

    def test_skipped(self):
        response = Response(session_id=1, question_id=1, value=TextValue(text="x"), is_skipped=True)
        assert not response.has_answer()

    def test_blank_text(self):
        assert not Response(session_id=1, question_id=1, value=TextValue(text="  ")).has_answer()

    def test_value_round_trips_through_json(self):
        response = Response(session_id=1, question_id=1, value=ArrayValue(items=["a", "b"]))
        assert Response.model_validate_json(response.model_dump_json()).value == ArrayValue(items=["a", "b"])


# CATEGORY TESTS


class TestCategoryModels:
    """Tests for category validation."""

    def test_name_is_stripped(self):
        assert CategoryCreate(name="  Dampak  ").name == "Dampak"

    def test_blank_name(self):
        with pytest.raises(ValidationError):
            CategoryCreate(name="   ")

    def test_negative_weight(self):
        with pytest.raises(ValidationError):
            CategoryCreate(name="Dampak", weight=-0.1)

    def test_inverted_range(self):
        category = Category(id=1, name="Dampak", min_value=100, max_value=10)
        assert (category.actual_min, category.actual_max) == (10, 100)

    def test_partial_update(self):
        assert CategoryUpdate(weight=0.5).model_dump(exclude_unset=True) == {"weight": 0.5}


# RANKING MODEL TESTS


class TestRankingModels:
    """Rubric payloads accept canonical and form field names."""

    def test_form_names(self):
        scores = DimensionScores.model_validate({
            "relevansiProgram": 5, "dampakCapaianNyata": 4, "inklusivitas": 3,
            "keberlanjutan": 2, "inovasiPotensiReplikasi": 1, "kualitasPresentasi": 5,
        })
        assert scores.as_dict()["sustainability"] == 2

    def test_missing_dimension(self):
        with pytest.raises(ValidationError):
            DimensionScores.model_validate({"relevance": 5})

    def test_target_required(self):
        with pytest.raises(ValidationError):
            JuryScoreCreate(scores={d.value: 3 for d in RubricDimension})

    def test_submission_id_alias(self):
        payload = JuryScoreCreate.model_validate({
            "submission_id": 9, "scores": {d.value: 3 for d in RubricDimension},
        })
        assert payload.session_id == 9


class TestSessionModels:
    """Tests for session request models."""

    def test_advance_request(self):
        assert AdvanceRequest(target_status="jury_deliberation").target_status == SessionStatus.JURY_DELIBERATION

    def test_advance_request_unknown_status(self):
        with pytest.raises(ValidationError):
            AdvanceRequest(target_status="archived")
