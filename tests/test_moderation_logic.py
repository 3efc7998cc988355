import unittest

from snet.core.messages import EMERGENCY_CONTACTS, category_label, flag_level_label, get_moderation_message
from snet.core.moderation_logic import DECISION_TABLE, decide
from snet.schemas.ai import ClassifierVerdict, FlagLevel, ModerationAction

THRESHOLD = 0.7


def verdict(category: str, confidence: float, **kwargs) -> ClassifierVerdict:
    return ClassifierVerdict(category=category, confidence=confidence, **kwargs)


class TestDecisionTable(unittest.TestCase):

    def test_low_confidence_is_pending_for_every_category(self):
        for category in list(DECISION_TABLE) + ["something_new"]:
            for confidence in (0.0, 0.3, 0.69):
                result = decide(verdict(category, confidence), THRESHOLD)
                self.assertEqual(result.action, ModerationAction.PENDING, (category, confidence))
                self.assertEqual(result.flag_level, FlagLevel.PENDING)

    def test_low_confidence_safe_is_still_held(self):
        result = decide(verdict("safe", 0.5, reasoning="có vẻ bình thường"), THRESHOLD)
        self.assertEqual(result.action, ModerationAction.PENDING)
        self.assertIn("50%", result.reasoning)
        self.assertIn("có vẻ bình thường", result.reasoning)

    def test_block_worthy_categories(self):
        for category in ("aggressive", "profanity", "spam"):
            result = decide(verdict(category, 0.7), THRESHOLD)
            self.assertEqual(result.action, ModerationAction.BLOCK)
            self.assertEqual(result.flag_level, FlagLevel.BLOCKED)

    def test_reject_categories(self):
        for category in ("depression", "self_harm", "suicide"):
            result = decide(verdict(category, 0.95), THRESHOLD)
            self.assertEqual(result.action, ModerationAction.REJECT)
            self.assertEqual(result.flag_level, FlagLevel.IMMEDIATE)

    def test_mild_categories(self):
        for category in ("mild_negative", "severe_distress"):
            result = decide(verdict(category, 0.8), THRESHOLD)
            self.assertEqual(result.action, ModerationAction.FLAG_MILD)
            self.assertEqual(result.flag_level, FlagLevel.MILD)

    def test_safe_is_allowed(self):
        result = decide(verdict("safe", 0.99), THRESHOLD)
        self.assertEqual(result.action, ModerationAction.ALLOW)
        self.assertEqual(result.flag_level, FlagLevel.NORMAL)

    def test_unknown_category_is_pending(self):
        result = decide(verdict("bullying", 0.99), THRESHOLD)
        self.assertEqual(result.action, ModerationAction.PENDING)
        self.assertEqual(result.category, "bullying")

    def test_classifier_fields_pass_through(self):
        result = decide(
            verdict("self_harm", 0.9, reasoning="nhắc đến tự làm đau", keywords_detected=["cắt tay"]),
            THRESHOLD,
        )
        self.assertEqual(result.reasoning, "nhắc đến tự làm đau")
        self.assertEqual(result.keywords, ["cắt tay"])
        self.assertEqual(result.confidence, 0.9)


class TestClassifierVerdict(unittest.TestCase):

    def test_category_is_normalised(self):
        self.assertEqual(verdict("  SELF_HARM ", 0.9).category, "self_harm")

    def test_percent_confidence_is_scaled(self):
        self.assertAlmostEqual(verdict("safe", 85).confidence, 0.85)

    def test_garbage_confidence_becomes_zero(self):
        self.assertEqual(verdict("safe", "very sure").confidence, 0.0)

    def test_non_finite_confidence_is_held_for_review(self):
        for raw in (float("nan"), float("inf"), "-inf"):
            v = verdict("suicide", raw)
            self.assertEqual(v.confidence, 0.0, raw)
            self.assertEqual(decide(v, THRESHOLD).action, ModerationAction.PENDING, raw)

    def test_single_keyword_string(self):
        v = ClassifierVerdict(category="profanity", confidence=0.9, keywords_detected="vcl")
        self.assertEqual(v.keywords_detected, ["vcl"])


class TestModerationMessages(unittest.TestCase):

    def test_reject_offers_chat_and_hotlines(self):
        message = get_moderation_message(ModerationAction.REJECT, "suicide")
        self.assertTrue(message["show_chat_suggestion"])
        self.assertEqual(message["emergency_contacts"], EMERGENCY_CONTACTS)

    def test_block_message_depends_on_category(self):
        spam = get_moderation_message(ModerationAction.BLOCK, "spam")
        profanity = get_moderation_message(ModerationAction.BLOCK, "profanity")
        other = get_moderation_message(ModerationAction.BLOCK, "aggressive")
        self.assertNotEqual(spam["title"], profanity["title"])
        self.assertNotEqual(profanity["title"], other["title"])
        self.assertNotIn("emergency_contacts", other)

    def test_pending_message(self):
        message = get_moderation_message(ModerationAction.PENDING)
        self.assertEqual(message["title"], "Đang chờ duyệt")
        self.assertFalse(message["show_chat_suggestion"])

    def test_labels(self):
        self.assertEqual(category_label("suicide"), "Ý định tự tử")
        self.assertEqual(category_label("unknown"), "unknown")
        self.assertEqual(flag_level_label(2), "Cần chú ý ngay")
        self.assertEqual(flag_level_label(99), "Bình thường")


if __name__ == "__main__":
    unittest.main()
