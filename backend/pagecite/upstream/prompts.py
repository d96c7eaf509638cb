"""Instructions sent upstream and localized fixed phrases."""

import re

NOT_FOUND: dict[str, str] = {
    "en": "Not found in the provided documents.",
    "ar": "لم يتم العثور على إجابة في المستندات المقدمة.",
}

DEFAULT_LOCALE = "en"

_ARABIC = re.compile(r"[؀-ۿݐ-ݿﭐ-﷿ﹰ-﻿]")

SYSTEM_INSTRUCTIONS = f"""You answer questions strictly from the documents returned by file_search.

STRICT RULES:

1. Use only the retrieved passages. Do not draw on general knowledge or guess.

2. When the passages do not hold enough to answer, reply with exactly one of:
   - English: "{NOT_FOUND["en"]}"
   - Arabic: "{NOT_FOUND["ar"]}"
   Give no partial answer in that case.

3. Reply in the language of the question.

4. Layout:
   a) The answer, written from the retrieved passages only.
   b) One blank line.
   c) A citation line:
      - English: "Sources: [DocumentName] Page X, [DocumentName] Page Y"
      - Arabic: "المصادر: [اسم المستند] صفحة X، [اسم المستند] صفحة Y"

5. Every passage starts with a [DOCUMENT: name | PAGE: N] marker. Cite the
   document name and page number from those markers exactly as written.

6. Never invent document names or page numbers.

7. Cite every document that contributed to the answer.

8. For greetings or questions unrelated to the documents, ask the user to
   ask about the documents instead.
"""


def detect_locale(text: str) -> str:
    """``ar`` when the text contains Arabic script, else ``en``."""
    return "ar" if _ARABIC.search(text or "") else DEFAULT_LOCALE


def not_found_phrase(locale: str | None) -> str:
    return NOT_FOUND.get(locale or DEFAULT_LOCALE, NOT_FOUND[DEFAULT_LOCALE])


def is_not_found(text: str) -> bool:
    """True when text is one of the canonical not-found phrases."""
    normalized = " ".join(text.split()).strip().strip('"').strip()
    return normalized in NOT_FOUND.values()
