import math
from enum import Enum, IntEnum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class FlagLevel(IntEnum):
    NORMAL = 0
    MILD = 1
    IMMEDIATE = 2
    BLOCKED = 3
    PENDING = 4


class ModerationAction(str, Enum):
    ALLOW = "allow"
    FLAG_MILD = "flag_mild"
    REJECT = "reject"
    BLOCK = "block"
    PENDING = "pending"


class ContentCategory(str, Enum):
    SAFE = "safe"
    MILD_NEGATIVE = "mild_negative"
    SEVERE_DISTRESS = "severe_distress"
    DEPRESSION = "depression"
    SELF_HARM = "self_harm"
    SUICIDE = "suicide"
    AGGRESSIVE = "aggressive"
    PROFANITY = "profanity"
    SPAM = "spam"


class ClassifierVerdict(BaseModel):
    """Raw JSON verdict from the moderation model. Fields pass through unchanged."""
    category: str
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    keywords_detected: List[str] = Field(default_factory=list)

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v):
        return str(v).strip().lower() if v is not None else ""

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        # Models occasionally answer 85 instead of 0.85
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(value):
            return 0.0
        if value > 1.0:
            value = value / 100.0
        return max(0.0, min(1.0, value))

    @field_validator("keywords_detected", mode="before")
    @classmethod
    def coerce_keywords(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class ModerationResult(BaseModel):
    action: ModerationAction
    flag_level: FlagLevel
    category: str
    reasoning: str = ""
    keywords: List[str] = Field(default_factory=list)
    confidence: float = 0.0


class UrgencyAssessment(BaseModel):
    urgency_level: int = Field(0, ge=0, le=3)
    reasoning: str = ""

    @field_validator("urgency_level", mode="before")
    @classmethod
    def clamp_level(cls, v):
        try:
            value = int(v)
        except (TypeError, ValueError):
            return 0
        return max(0, min(3, value))


class TriageTurn(BaseModel):
    role: str
    content: str
    sender_name: Optional[str] = None
