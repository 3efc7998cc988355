import structlog

from snet.core.config import settings
from snet.core.content_filters import detect_slang, detect_spam
from snet.core.moderation_logic import decide, pending_result
from snet.schemas.ai import FlagLevel, ModerationAction, ModerationResult
from snet.services.ai_service import GeminiService

logger = structlog.get_logger()


class ModerationService:
    """
    Classifies user text and turns the verdict into a moderation action.
    Never raises: if the model cannot give a usable answer the content is
    held for counselor review instead of being allowed or blocked.
    """

    @staticmethod
    async def analyze_content(content: str) -> ModerationResult:
        if not content or not content.strip():
            return ModerationResult(
                action=ModerationAction.ALLOW,
                flag_level=FlagLevel.NORMAL,
                category="safe",
                reasoning="Empty content",
                confidence=1.0,
            )

        slang = detect_slang(content)
        if slang:
            logger.info("moderation_quick_slang", keywords=slang)
            return ModerationResult(
                action=ModerationAction.BLOCK,
                flag_level=FlagLevel.BLOCKED,
                category="profanity",
                reasoning="Phát hiện ngôn ngữ tục tĩu: " + ", ".join(slang),
                keywords=slang,
                confidence=0.95,
            )

        spam_reason = detect_spam(content)
        if spam_reason:
            logger.info("moderation_quick_spam", reason=spam_reason)
            return ModerationResult(
                action=ModerationAction.BLOCK,
                flag_level=FlagLevel.BLOCKED,
                category="spam",
                reasoning=spam_reason,
                confidence=0.9,
            )

        verdict = await GeminiService.classify_content(content)
        if verdict is None:
            logger.warning("moderation_classifier_unavailable")
            return pending_result()

        result = decide(verdict, settings.MODERATION_CONFIDENCE_THRESHOLD)
        if result.action == ModerationAction.PENDING:
            logger.warning("moderation_held", category=verdict.category, confidence=verdict.confidence)
        else:
            logger.info("moderation_decided", action=result.action.value, category=result.category)
        return result
