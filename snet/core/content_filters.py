"""
Cheap local pre-filters that run before the moderation model is called.

Obvious Vietnamese profanity (including spellings that insert dots, dashes or
spaces to dodge filters) and obvious spam are blocked without spending an
API call.
"""

import re
import unicodedata
from collections import Counter
from typing import List, Optional

# (pattern, keyword reported back to counselors)
SLANG_PATTERNS = [
    (r"d[iị]t\s*m[eẹ]", "địt mẹ"),
    (r"\bdm\b", "dm"),
    (r"\bd\.m\b", "d.m"),
    (r"\bd\sm\b", "d m"),
    (r"\bđm\b", "đm"),
    (r"\bđ\.m\b", "đ.m"),
    (r"\bdcm\b", "dcm"),
    (r"\bđcm\b", "đcm"),
    (r"\bd\.c\.m\b", "d.c.m"),
    (r"\bdkm\b", "dkm"),
    (r"\bđkm\b", "đkm"),
    (r"\bdkmm\b", "dkmm"),
    (r"\bđkmm\b", "đkmm"),
    (r"\bdcmm\b", "dcmm"),
    (r"\bđcmm\b", "đcmm"),
    (r"\bvl\b", "vl"),
    (r"\bv\.l\b", "v.l"),
    (r"v[aã]i\s*l[oồ][nln]", "vãi lồn"),
    (r"\bvcl\b", "vcl"),
    (r"\bv\.c\.l\b", "v.c.l"),
    (r"\bcl\b", "cl"),
    (r"\bc\.l\b", "c.l"),
    (r"c[aá]i\s*l[oồ][nln]", "cái lồn"),
    (r"\bcc\b", "cc"),
    (r"\bc\.c\b", "c.c"),
    (r"\bc[aặ][ck]\b", "cặc"),
    (r"\bclm\b", "clm"),
    (r"\bđĩ\b", "đĩ"),
    (r"con\s*đĩ", "con đĩ"),
    (r"[oó]c\s*ch[oó]", "óc chó"),
    (r"\bđéo\b", "đéo"),
    (r"\bdeo\b", "đéo"),
    (r"\bđ[eế]u\b", "đếu"),
]
_COMPILED_SLANG = [(re.compile(p, re.IGNORECASE), word) for p, word in SLANG_PATTERNS]

# Matched against the squashed form, catches "d-c-m", "v a i l o n" and similar
SQUASHED_STEMS = ["ditme", "dcm", "dkm", "dkmm", "dcmm", "vailon", "vcl", "cailon"]

_SEPARATORS = re.compile(r"[._\-\s]+")
_CHAR_RUN = re.compile(r"(.)\1{6,}")
_URL = re.compile(r"https?://\S+", re.IGNORECASE)
_CONSONANT_RUN = re.compile(r"[bcdfghjklmnpqrstvwxz]{5,}", re.IGNORECASE)
_EMOJI = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF☀-⛿✀-➿]"
)


def squash(text: str) -> str:
    """Lower-case, strip diacritics, fold đ to d and drop separators."""
    lowered = text.lower().replace("đ", "d")
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _SEPARATORS.sub("", stripped)


def detect_slang(text: str) -> List[str]:
    """Return the profanity keywords found in text, empty when clean."""
    original = text.lower()
    squashed = squash(text)
    found: List[str] = []

    for pattern, word in _COMPILED_SLANG:
        if pattern.search(original) or pattern.search(squashed):
            if word not in found:
                found.append(word)

    for stem in SQUASHED_STEMS:
        if stem in squashed and not any(stem[:2] in k for k in found):
            found.append(stem)

    return found


def detect_spam(text: str) -> Optional[str]:
    """Return a reason string when text looks like spam, else None."""
    if _CHAR_RUN.search(text):
        return "Phát hiện spam: ký tự lặp lại quá nhiều"

    words = text.lower().split()
    if len(words) >= 5:
        counts = Counter(w for w in words if len(w) > 2)
        if counts:
            max_repeat = max(counts.values())
            if max_repeat >= 5 and max_repeat / len(words) > 0.5:
                return "Phát hiện spam: từ lặp lại quá nhiều"

    if len(text) > 20:
        caps = sum(1 for ch in text if "A" <= ch <= "Z")
        if caps / len(text) > 0.7:
            return "Phát hiện spam: viết hoa quá nhiều"

    if len(_EMOJI.findall(text)) > 10:
        return "Phát hiện spam: emoji quá nhiều"

    if len(_URL.findall(text)) > 2:
        return "Phát hiện spam: quá nhiều liên kết"

    if _CONSONANT_RUN.search(text):
        return "Phát hiện spam: nội dung vô nghĩa"

    return None
