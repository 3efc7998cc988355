from typing import Dict, Tuple

from snet.schemas.ai import ClassifierVerdict, ContentCategory, FlagLevel, ModerationAction, ModerationResult

# category -> (action, flag level)
DECISION_TABLE: Dict[str, Tuple[ModerationAction, FlagLevel]] = {
    ContentCategory.SAFE.value: (ModerationAction.ALLOW, FlagLevel.NORMAL),
    ContentCategory.MILD_NEGATIVE.value: (ModerationAction.FLAG_MILD, FlagLevel.MILD),
    ContentCategory.SEVERE_DISTRESS.value: (ModerationAction.FLAG_MILD, FlagLevel.MILD),
    ContentCategory.DEPRESSION.value: (ModerationAction.REJECT, FlagLevel.IMMEDIATE),
    ContentCategory.SELF_HARM.value: (ModerationAction.REJECT, FlagLevel.IMMEDIATE),
    ContentCategory.SUICIDE.value: (ModerationAction.REJECT, FlagLevel.IMMEDIATE),
    ContentCategory.AGGRESSIVE.value: (ModerationAction.BLOCK, FlagLevel.BLOCKED),
    ContentCategory.PROFANITY.value: (ModerationAction.BLOCK, FlagLevel.BLOCKED),
    ContentCategory.SPAM.value: (ModerationAction.BLOCK, FlagLevel.BLOCKED),
}


def pending_result(reasoning: str = "API unavailable - pending counselor review", category: str = "pending") -> ModerationResult:
    return ModerationResult(
        action=ModerationAction.PENDING,
        flag_level=FlagLevel.PENDING,
        category=category,
        reasoning=reasoning,
        keywords=[],
        confidence=0.0,
    )


def decide(verdict: ClassifierVerdict, threshold: float) -> ModerationResult:
    """
    Map a classifier verdict onto one of the five moderation actions.

    Anything under the confidence threshold is held for a counselor, whatever
    the category. Categories the table does not know are held as well.
    """
    if verdict.confidence < threshold:
        return ModerationResult(
            action=ModerationAction.PENDING,
            flag_level=FlagLevel.PENDING,
            category=verdict.category,
            reasoning=(
                f"Độ tin cậy thấp ({round(verdict.confidence * 100)}%) - cần tư vấn viên xem xét. "
                f"AI phân tích: {verdict.reasoning}"
            ),
            keywords=verdict.keywords_detected,
            confidence=verdict.confidence,
        )

    action, flag_level = DECISION_TABLE.get(verdict.category, (ModerationAction.PENDING, FlagLevel.PENDING))
    return ModerationResult(
        action=action,
        flag_level=flag_level,
        category=verdict.category,
        reasoning=verdict.reasoning,
        keywords=verdict.keywords_detected,
        confidence=verdict.confidence,
    )
