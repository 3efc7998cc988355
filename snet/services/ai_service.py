import httpx
import json
import re
import structlog
from typing import Optional, Dict, Any, List
from pydantic import ValidationError
from snet.core.config import settings
from snet.schemas.ai import ClassifierVerdict, UrgencyAssessment, TriageTurn

logger = structlog.get_logger()

MODERATION_PROMPT = """You are a content moderation AI for a mental health support platform for Vietnamese students. Analyze the following content and categorize it.

=== CRITICAL: VIETNAMESE TEENAGER SLANG ===
Pay SPECIAL ATTENTION to Vietnamese teenager slang and profanity, including but not limited to:
- "dm", "đm", "d.m", "đ.m", "đ m" = "địt mẹ" (extremely vulgar, mother insult)
- "dcm", "đcm", "d.c.m", "dkm", "đkm", "dkmm", "dcmm" = variants of the above
- "vl", "vãi lồn", "vcl", "cl", "cc", "cặc", "clm" = vulgar terms
- "đéo", "đếu" = vulgar "no"
- "đĩ", "óc chó", "ngu vcl" and "thằng"/"con" + insults = personal attacks
- "mày", "tao" in aggressive context
- Any creative spellings/spacing to bypass filters (d.m, đ-m, đ_m, etc.)

Also detect SPAM: repeated characters or words, advertising, many links, nonsense text, copy-paste, emoji spam, all caps shouting.

Categories:
1. "safe" - Normal content, no concerns
2. "mild_negative" - Mild negative emotions, sadness, stress, frustration (but not dangerous)
3. "severe_distress" - Severe emotional distress, hopelessness, but no explicit self-harm
4. "depression" - Clear signs of depression, persistent sadness, loss of interest
5. "self_harm" - Mentions of self-harm, cutting, hurting oneself
6. "suicide" - Suicidal ideation, thoughts of ending life, wanting to die
7. "aggressive" - Violent intentions, threats, bullying, hate speech, harmful to others
8. "profanity" - Contains Vietnamese slang/profanity or offensive language
9. "spam" - Spam, nonsense, advertising, repetitive content, gibberish

Respond ONLY with a valid JSON object, no other text:
{
  "category": "one of the categories above",
  "confidence": 0.0 to 1.0,
  "reasoning": "brief explanation in Vietnamese",
  "keywords_detected": ["list", "of", "concerning", "words"]
}

If you're not confident (< 70%), still provide your best guess but with low confidence.

Content to analyze:
\"\"\"
{CONTENT}
\"\"\"
"""

URGENCY_PROMPT = """Bạn là chuyên gia tâm lý học đường. Phân tích các tin nhắn sau từ một học sinh và đánh giá mức độ khẩn cấp từ 0-3:

0 = Bình thường (tham vấn thông thường, không có dấu hiệu lo ngại)
1 = Cần chú ý (có một số khó khăn cần theo dõi)
2 = Khẩn cấp (cần hỗ trợ sớm, có dấu hiệu căng thẳng đáng kể)
3 = Rất khẩn cấp (cần can thiệp ngay, có dấu hiệu nguy hiểm hoặc tự làm hại)

Tin nhắn của học sinh:
{MESSAGES}

Trả lời theo định dạng JSON:
{"urgency_level": <số từ 0-3>, "reasoning": "<giải thích ngắn gọn lý do>"}

Chỉ trả về JSON, không thêm text khác."""

TRIAGE_SYSTEM_PROMPT = """Bạn là trợ lý ảo của S-Net, nền tảng hỗ trợ tâm lý cho học sinh.
Tư vấn viên chưa tham gia cuộc trò chuyện. Nhiệm vụ của bạn:
- Lắng nghe, thể hiện sự đồng cảm, trả lời ngắn gọn (2-3 câu).
- Hỏi nhẹ nhàng để hiểu rõ hơn vấn đề học sinh đang gặp.
- KHÔNG chẩn đoán, KHÔNG đưa lời khuyên y khoa.
- Nếu học sinh nhắc đến tự làm hại bản thân hoặc tự tử, khuyến khích gọi 111 hoặc 115 ngay và trấn an rằng tư vấn viên sẽ sớm hỗ trợ.
- Nhắc rằng tư vấn viên thật sẽ tham gia sớm."""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class GeminiService:
    """
    Thin client for the hosted Gemini model.
    One attempt per call; every failure is logged and surfaces as None so
    callers can fall back (moderation holds content for a counselor).
    """

    TIMEOUT = settings.GEMINI_TIMEOUT

    @classmethod
    def _endpoint(cls) -> str:
        return f"{settings.GEMINI_API_BASE}/{settings.GEMINI_MODEL}:generateContent"

    @classmethod
    async def _call_gemini(
        cls,
        contents: List[Dict[str, Any]],
        temperature: float = 0.2,
        max_tokens: int = 500,
        system_instruction: Optional[str] = None,
    ) -> Optional[str]:
        """
        Private safe wrapper for Gemini HTTP calls. Returns the text of the
        first candidate, or None.
        """
        if not settings.GEMINI_API_KEY:
            logger.warning("gemini_api_key_missing")
            return None

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": settings.GEMINI_API_KEY,
        }
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system_instruction:
            payload["system_instruction"] = {"parts": [{"text": system_instruction}]}

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    cls._endpoint(),
                    headers=headers,
                    json=payload,
                    timeout=cls.TIMEOUT,
                )
            except httpx.TimeoutException:
                logger.error("gemini_timeout", timeout=cls.TIMEOUT)
                return None
            except httpx.HTTPError as e:
                logger.error("gemini_request_failed", error=str(e))
                return None

        if response.status_code != 200:
            logger.error("gemini_api_error", status=response.status_code, body=response.text[:500])
            return None

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("gemini_empty_response", error=str(e))
            return None

    @staticmethod
    def _extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
        if not text:
            return None
        match = _JSON_OBJECT.search(text)
        if not match:
            logger.error("gemini_no_json", content=text[:200])
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.error("gemini_parse_error", error=str(e), content=text[:200])
            return None
        return parsed if isinstance(parsed, dict) else None

    @classmethod
    async def classify_content(cls, content: str) -> Optional[ClassifierVerdict]:
        prompt = MODERATION_PROMPT.replace("{CONTENT}", content)
        text = await cls._call_gemini(
            [{"parts": [{"text": prompt}]}],
            temperature=0.1,
            max_tokens=500,
        )
        parsed = cls._extract_json(text)
        if parsed is None:
            return None
        try:
            return ClassifierVerdict.model_validate(parsed)
        except ValidationError as e:
            logger.error("gemini_verdict_invalid", error=str(e))
            return None

    @classmethod
    async def analyze_urgency(cls, student_messages: List[str]) -> UrgencyAssessment:
        """
        Rate how urgently a student needs a counselor, 0..3.
        Falls back to 0 when the model is unavailable.
        """
        if not student_messages:
            return UrgencyAssessment(urgency_level=0, reasoning="No messages")

        numbered = "\n".join(f'{i + 1}. "{msg}"' for i, msg in enumerate(student_messages))
        text = await cls._call_gemini(
            [{"parts": [{"text": URGENCY_PROMPT.replace("{MESSAGES}", numbered)}]}],
            temperature=0.3,
            max_tokens=200,
        )
        parsed = cls._extract_json(text)
        if parsed is None:
            return UrgencyAssessment(urgency_level=0, reasoning="Could not parse AI response")

        # Older prompt revisions answered in camelCase
        level = parsed.get("urgency_level", parsed.get("urgencyLevel", 0))
        return UrgencyAssessment(urgency_level=level, reasoning=str(parsed.get("reasoning", "")))

    @classmethod
    async def generate_triage_reply(cls, history: List[TriageTurn]) -> Optional[str]:
        contents = [
            {
                "role": "user" if turn.role == "student" else "model",
                "parts": [{"text": turn.content}],
            }
            for turn in history
        ]
        if not contents or contents[-1]["role"] != "user":
            return None

        text = await cls._call_gemini(
            contents,
            temperature=0.7,
            max_tokens=300,
            system_instruction=TRIAGE_SYSTEM_PROMPT,
        )
        return text.strip() if text else None
