from enum import Enum

class Role(str, Enum):
    PESERTA = "PESERTA"        # Participant
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"
    JURI = "JURI"              # Juror

class SessionStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    NEEDS_REVISION = "needs_revision"    # Derived from open critical comments
    RESUBMITTED = "resubmitted"
    APPROVED = "approved"
    JURY_SCORING = "jury_scoring"
    JURY_DELIBERATION = "jury_deliberation"
    FINAL_DECISION = "final_decision"
    COMPLETED = "completed"
    REJECTED = "rejected"

class ReviewStage(str, Enum):
    ADMIN_VALIDATION = "admin_validation"
    JURY_SCORING = "jury_scoring"

class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REQUEST_REVISION = "request_revision"
    PASS_TO_JURY = "pass_to_jury"
    REJECT = "reject"

class InputType(str, Enum):
    TEXT_OPEN = "text-open"
    TEXT_SHORT = "text-short"
    NUMERIC = "numeric"
    MULTIPLE_CHOICE = "multiple-choice"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SELECT = "select"
    BOOLEAN = "boolean"
    DATE = "date"
    EMAIL = "email"
    URL = "url"
    FILE_UPLOAD = "file-upload"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            alias = INPUT_TYPE_ALIASES.get(value.strip().lower())
            if alias is not None:
                return alias
        return None

class ScoreType(str, Enum):
    NUMBER = "number"
    PERCENTAGE = "percentage"
    CURRENCY = "currency"
    RATING = "rating"
    BOOLEAN = "boolean"

class RangeClassification(str, Enum):
    UNDER = "under"
    IN_RANGE = "in_range"
    OVER = "over"

class RubricDimension(str, Enum):
    RELEVANCE = "relevance"
    IMPACT = "impact"
    INCLUSIVITY = "inclusivity"
    SUSTAINABILITY = "sustainability"
    INNOVATION = "innovation"
    PRESENTATION = "presentation"


# Spellings used by older question imports
INPUT_TYPE_ALIASES = {
    "numeric-open": InputType.NUMERIC,
    "multiple choice": InputType.MULTIPLE_CHOICE,
    "multiple_choice": InputType.MULTIPLE_CHOICE,
    "dropdown": InputType.SELECT,
    "yes-no": InputType.BOOLEAN,
    "link": InputType.URL,
    "file": InputType.FILE_UPLOAD,
    "upload-file": InputType.FILE_UPLOAD,
}
