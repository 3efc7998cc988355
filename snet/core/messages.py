"""
User-facing Vietnamese copy for moderation outcomes and labels.
"""

from typing import Dict, Optional

from snet.schemas.ai import FlagLevel, ModerationAction

CATEGORY_LABELS = {
    "safe": "An toàn",
    "mild_negative": "Tiêu cực nhẹ",
    "severe_distress": "Căng thẳng nghiêm trọng",
    "depression": "Trầm cảm",
    "self_harm": "Tự gây thương tích",
    "suicide": "Ý định tự tử",
    "aggressive": "Hung hăng/Bạo lực",
    "profanity": "Ngôn ngữ tục tĩu",
    "spam": "Spam",
}

FLAG_LEVEL_LABELS = {
    FlagLevel.NORMAL: "Bình thường",
    FlagLevel.MILD: "Theo dõi",
    FlagLevel.IMMEDIATE: "Cần chú ý ngay",
    FlagLevel.BLOCKED: "Đã chặn",
    FlagLevel.PENDING: "Chờ duyệt",
}

URGENCY_LABELS = {
    0: "Bình thường",
    1: "Cần chú ý",
    2: "Khẩn cấp",
    3: "Rất khẩn cấp",
}

# Shown with REJECT so the student has somewhere to turn right away
EMERGENCY_CONTACTS = [
    {"name": "Tổng đài bảo vệ trẻ em quốc gia", "phone": "111"},
    {"name": "Cấp cứu", "phone": "115"},
]


def category_label(category: str) -> str:
    return CATEGORY_LABELS.get(category, category)


def flag_level_label(level: int) -> str:
    try:
        return FLAG_LEVEL_LABELS[FlagLevel(level)]
    except ValueError:
        return FLAG_LEVEL_LABELS[FlagLevel.NORMAL]


def get_moderation_message(action: ModerationAction, category: Optional[str] = None) -> Dict:
    if action == ModerationAction.BLOCK:
        if category == "spam":
            return {
                "title": "Nội dung bị từ chối",
                "message": "Bài viết của bạn bị phát hiện là spam và không thể được đăng. Vui lòng viết nội dung có ý nghĩa.",
                "show_chat_suggestion": False,
            }
        if category == "profanity":
            return {
                "title": "Ngôn ngữ không phù hợp",
                "message": "Bài viết của bạn chứa ngôn ngữ tục tĩu và không thể được đăng. Vui lòng sử dụng ngôn ngữ văn minh.",
                "show_chat_suggestion": False,
            }
        return {
            "title": "Nội dung không được phép",
            "message": "Bài viết của bạn chứa nội dung không phù hợp và không thể được đăng.",
            "show_chat_suggestion": False,
        }

    if action == ModerationAction.REJECT:
        return {
            "title": "Chúng tôi quan tâm đến bạn",
            "message": (
                "Chúng tôi nhận thấy bạn có thể đang trải qua giai đoạn khó khăn. Bài viết này không thể được đăng "
                "công khai, nhưng chúng tôi khuyến khích bạn trò chuyện trực tiếp với tư vấn viên để được hỗ trợ tốt hơn."
            ),
            "show_chat_suggestion": True,
            "emergency_contacts": EMERGENCY_CONTACTS,
        }

    if action == ModerationAction.PENDING:
        return {
            "title": "Đang chờ duyệt",
            "message": "Bài viết của bạn đã được gửi và đang chờ tư vấn viên xem xét. Bạn sẽ được thông báo khi bài viết được duyệt.",
            "show_chat_suggestion": False,
        }

    if action == ModerationAction.FLAG_MILD:
        return {
            "title": "Đã đăng bài",
            "message": "Bài viết của bạn đã được đăng. Nếu bạn cần hỗ trợ, đừng ngần ngại liên hệ với tư vấn viên.",
            "show_chat_suggestion": False,
        }

    return {
        "title": "Đã đăng bài",
        "message": "Bài viết của bạn đã được đăng thành công.",
        "show_chat_suggestion": False,
    }
