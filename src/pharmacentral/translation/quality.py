"""Heuristic quality scoring for candidate translations."""

from __future__ import annotations

import re

DEFAULT_THRESHOLD = 0.7

_ISSUE_PATTERNS = (
    re.compile(r"^[a-zA-Z\s]*$"),
    re.compile(r"^[\u0600-\u06FF\s]*$"),
    re.compile(r"^[0-9\s]*$"),
    re.compile(r"^[^\w\u0600-\u06FF]*$"),
    re.compile(r"(.)\1{3,}"),
    re.compile(r"^.{1,3}$"),
    re.compile(r"^.{200,}$"),
)
_ARABIC_CHARS = re.compile(r"[\u0600-\u06FF]")

# Criterion weights in tenths so the threshold comparison stays exact.
_NO_ISSUES_WEIGHT = 3
_LENGTH_WEIGHT = 3
_SCRIPT_WEIGHT = 2
_CONTENT_WEIGHT = 2
_MIN_LENGTH_RATIO = 0.3
_MAX_LENGTH_RATIO = 3.0


class QualityEvaluator:
    """Scores a translation in [0, 1] from four independent criteria.

    ``target_language`` is the default for calls that do not name one.
    """

    def __init__(self, *, target_language: str = "ar", threshold: float = DEFAULT_THRESHOLD):
        self.target_language = target_language
        self.threshold = threshold

    def score(self, original: str, translated: str, target_language: str | None = None) -> float:
        if not translated:
            return 0.0
        target = target_language or self.target_language
        tenths = 0
        if not any(pattern.search(translated) for pattern in _ISSUE_PATTERNS):
            tenths += _NO_ISSUES_WEIGHT
        if original:
            shorter, longer = sorted((len(original), len(translated)))
            if _MIN_LENGTH_RATIO < shorter / longer < _MAX_LENGTH_RATIO:
                tenths += _LENGTH_WEIGHT
        if target == "ar" and _ARABIC_CHARS.search(translated):
            tenths += _SCRIPT_WEIGHT
        if len([word for word in translated.split() if len(word) > 1]) >= 2:
            tenths += _CONTENT_WEIGHT
        return min(tenths, 10) / 10

    def accepts(
        self,
        original: str,
        translated: str,
        target_language: str | None = None,
    ) -> bool:
        return self.score(original, translated, target_language) >= self.threshold
