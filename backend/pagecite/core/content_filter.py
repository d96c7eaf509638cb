"""Input screening and output scrubbing for the chat endpoint.

Inputs are rejected before any upstream call when they are empty, too long,
abusive, or look like prompt injection (English and Arabic pattern sets).
Outputs are scrubbed of system-prompt leakage once the full answer has been
assembled; partial deltas are never scrubbed since a later token can change
whether a pattern matches.
"""

import re
from dataclasses import dataclass
from enum import Enum

from pagecite.core.logging import get_logger


class FilterCategory(str, Enum):  # noqa: UP042
    """Why an input was blocked."""

    INAPPROPRIATE = "inappropriate"
    """Abusive, profane, violent, or sexual content."""

    INJECTION = "injection"
    """Attempts to override or extract the assistant's instructions."""

    OFFTOPIC = "offtopic"
    """Empty input or clearly unrelated to the document corpus."""


@dataclass(frozen=True)
class FilterResult:
    """Outcome of screening one user input."""

    blocked: bool
    reason: str | None = None
    category: FilterCategory | None = None


MAX_INPUT_LENGTH = 2000
"""Maximum allowed length for user input in characters."""

OFFTOPIC_MIN_LENGTH = 20
"""Messages shorter than this (greetings) are never considered off-topic."""


# Evaluated before injection patterns
ABUSE_PATTERNS: list[str] = [
    # English profanity and slurs
    r"\b(fuck|shit|bitch|ass(?:hole)?|bastard|dick|cock|pussy|whore|slut|cunt|nigger|faggot|retard)\b",
    r"\b(porn|xxx|nude|naked|hentai|erotic)\b",
    r"\b(kill\s+(?:you|him|her|them|myself)|murder|suicide|bomb|terrorist|terrorism)\b",
    r"\b(drug\s+deal|cocaine|heroin|meth(?:amphetamine)?)\b",
    # Arabic
    r"(كس\s*أم|كسم|طيز|شرموط|عرص|متناك|منيوك|قحب|يلعن)",
    r"\b(نيك|انيك|ينيك|تنيك)\b",
    r"\b(حمار|كلب|حيوان|خنزير)\b.*\b(انت|أنت)\b",
    r"\bيا\s+(حمار|كلب|حيوان|خنزير|غبي|أحمق|أهبل)\b",
]

INJECTION_PATTERNS: list[str] = [
    # English
    r"\bignore\s+(all\s+)?(the\s+)?(previous|prior|above|earlier)\s+(instructions?|rules|prompts?)\b",
    r"\bignore\s+(the\s+)?(above|system)\s+(prompt|instructions|rules)\b",
    r"\byou\s+are\s+now\s+(a|an|my)\b",
    r"\bpretend\s+(you\s+are|to\s+be|you're)\b",
    r"\bact\s+as\s+(a|an|if|though)\b",
    r"\bnew\s+(instructions|rules|prompt|role)\b",
    r"\bforget\s+(everything|all|your|previous)\b",
    r"\b(override|bypass)\s+(your|the|all)\s+(rules|instructions|prompt|filters?)\b",
    r"\breveal\s+(your|the)\s+(system\s+)?(prompt|instructions|rules)\b",
    r"\bwhat\s+(is|are)\s+your\s+(system\s+)?(prompt|instructions|rules)\b",
    r"\brepeat\s+(your|the)\s+(system\s+)?(prompt|instructions)\b",
    r"\bshow\s+(me\s+)?your\s+(system\s+)?prompt\b",
    r"\bjailbreak",
    r"\bDAN\s+mode\b",
    r"\bdeveloper\s+mode\b",
    r"\[/?INST\]|<\|im_start\|>",
    # Arabic
    r"تجاهل\s+(كل\s+|جميع\s+)?التعليمات",
    r"تجاهل\s+(القواعد|الأوامر|النظام)",
    r"تصرف\s+(كأنك|وكأنك|على\s+أنك)",
    r"تظاهر\s+(بأنك|أنك|إنك)",
    r"أنسى?\s+(كل|جميع|التعليمات)",
    r"اكشف\s+(لي\s+)?(التعليمات|الأوامر|النظام)",
    r"ما\s+هي\s+تعليماتك",
    r"أعد\s+(لي\s+)?تعليماتك",
]

OFFTOPIC_PATTERNS: list[str] = [
    r"\b(recipe|cook|cooking|food|restaurant)\b",
    r"\b(movie|film|song|music|game|sport|football|soccer)\b",
    r"\b(weather|temperature|forecast)\b",
    r"\b(joke|funny|humor|laugh)\b",
    r"\b(love|dating|relationship|marriage)\b",
    r"(وصفة|طبخ|أكل|مطعم)",
    r"(فيلم|أغنية|موسيقى|لعبة|كرة|رياضة)",
    r"(طقس|حرارة)",
    r"(نكتة|مضحك|ضحك)",
]

# Leakage scrubbed from final answers
LEAKAGE_PATTERNS: list[str] = [
    r"STRICT RULES[\s\S]{0,500}",
    r"system\s*prompt[\s\S]{0,200}",
    r"\[SYSTEM\]:?[\s\S]{0,200}",
    r"^\s*SYSTEM:[\s\S]{0,200}",
]

# Instruction lines shorter than this are too generic to treat as leakage
_MIN_ECHO_LINE_LENGTH = 40

_ABUSE = [re.compile(p, re.IGNORECASE) for p in ABUSE_PATTERNS]
_INJECTION = [re.compile(p, re.IGNORECASE) for p in INJECTION_PATTERNS]
_OFFTOPIC = [re.compile(p, re.IGNORECASE) for p in OFFTOPIC_PATTERNS]
_LEAKAGE = [re.compile(p, re.IGNORECASE | re.MULTILINE) for p in LEAKAGE_PATTERNS]


def is_off_topic(text: str) -> bool:
    """Soft off-topic check: two or more unrelated-topic signals."""
    normalized = text.strip().lower()
    if len(normalized) < OFFTOPIC_MIN_LENGTH:
        return False

    matches = sum(1 for pattern in _OFFTOPIC if pattern.search(normalized))
    return matches >= 2


class ContentFilter:
    """Pre-request input rejection and post-response leakage scrubbing."""

    def __init__(
        self,
        max_input_length: int = MAX_INPUT_LENGTH,
        block_offtopic: bool = False,
        instructions: str | None = None,
    ):
        self.max_input_length = max_input_length
        self.block_offtopic = block_offtopic
        self._echo_lines = [
            line.strip()
            for line in (instructions or "").splitlines()
            if len(line.strip()) >= _MIN_ECHO_LINE_LENGTH
        ]
        self._logger = get_logger(__name__)

    def screen_input(self, text: str) -> FilterResult:
        """Screen user input, returning on the first matching rule.

        Order: empty, length ceiling, abuse patterns, injection patterns,
        then (when enabled) the off-topic heuristic.
        """
        normalized = text.strip() if isinstance(text, str) else ""

        if not normalized:
            return self._block("Empty message", FilterCategory.OFFTOPIC, normalized)

        if len(normalized) > self.max_input_length:
            return self._block("Message too long", FilterCategory.INAPPROPRIATE, normalized)

        for pattern in _ABUSE:
            if pattern.search(normalized):
                return self._block(
                    "Inappropriate content detected", FilterCategory.INAPPROPRIATE, normalized
                )

        for pattern in _INJECTION:
            if pattern.search(normalized):
                return self._block("Invalid request", FilterCategory.INJECTION, normalized)

        if self.block_offtopic and is_off_topic(normalized):
            return self._block("Question is off-topic", FilterCategory.OFFTOPIC, normalized)

        return FilterResult(blocked=False)

    def screen_output(self, text: str) -> str:
        """Strip system-prompt leakage from a fully assembled answer.

        Best-effort scrub; must not be applied to partial deltas.
        """
        if not text:
            return ""

        filtered = text
        for line in self._echo_lines:
            if line in filtered:
                filtered = filtered.replace(line, "")
                self._logger.warning("instruction_echo_filtered", line_preview=line[:50])

        for pattern in _LEAKAGE:
            if pattern.search(filtered):
                filtered = pattern.sub("", filtered)
                self._logger.warning("prompt_leak_filtered", pattern=pattern.pattern[:50])

        filtered = filtered.strip()
        if filtered != text.strip():
            self._logger.info(
                "output_filtered",
                original_length=len(text),
                filtered_length=len(filtered),
            )
        return filtered

    def _block(self, reason: str, category: FilterCategory, text: str) -> FilterResult:
        self._logger.warning(
            "content_blocked",
            category=category.value,
            reason=reason,
            input_length=len(text),
            input_preview=text[:200],
        )
        return FilterResult(blocked=True, reason=reason, category=category)


__all__ = [
    "FilterCategory",
    "FilterResult",
    "ContentFilter",
    "MAX_INPUT_LENGTH",
    "ABUSE_PATTERNS",
    "INJECTION_PATTERNS",
    "LEAKAGE_PATTERNS",
    "is_off_topic",
]
