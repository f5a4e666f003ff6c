"""
Reduction of free-form provider text to canonical answers.

- Binary (true/false) items map to VERDADEIRO / FALSO
- Multiple choice items map to "A alternativa correta é (X)"
- Discursive answers are kept as trimmed text

Text that matches no known pattern is returned trimmed and unchanged, so an
unparseable answer is still an answer.
"""

import re
from typing import Optional

AFFIRMATIVE = "VERDADEIRO"
NEGATIVE = "FALSO"
BINARY_TOKENS = (AFFIRMATIVE, NEGATIVE)
CHOICE_LETTERS = "ABCDE"
CHOICE_TEMPLATE = "A alternativa correta é ({letter})"

_LONE_V = re.compile(r"(?<=\s)V(?=\s)")
_LONE_F = re.compile(r"(?<=\s)F(?=\s)")

# A lower-case letter after a marker only counts when no word follows it,
# so the article in "é a letra C" is not read as A.
_MARKED_LETTER = r"(?:([A-E])|([a-e])(?!\s+[a-zà-ÿ]))"

# Ordered strongest to weakest. The first three are unambiguous and are the
# only ones trusted when reading ballots back.
_CHOICE_PATTERNS = [
    # "A alternativa correta é (B)" / "alternativa correta: b"
    re.compile(r"(?i:alternativa correta)[éeh\s:]+\(?" + _MARKED_LETTER + r"\)?(?![A-Za-z])"),
    # "(B)"
    re.compile(r"\(([A-Ea-e])\)"),
    # "B", "b)", " B. "
    re.compile(r"^[^A-Za-z]*([A-Ea-e])[^A-Za-z]*$"),
    # "Letra B" / "Opção c" / "alternativa B"
    re.compile(r"(?i:letra|opção|opcao|alternativa)\s+" + _MARKED_LETTER + r"(?![A-Za-z])"),
    # Any capital A-E followed by a non-letter
    re.compile(r"([A-E])[^A-Za-z]"),
]
_STRICT_CHOICE_PATTERNS = _CHOICE_PATTERNS[:3]


def normalize_binary(text: str) -> str:
    """Map a true/false answer to VERDADEIRO or FALSO; first marker in priority order wins."""
    t = text.strip()
    if AFFIRMATIVE in t:
        return AFFIRMATIVE
    if NEGATIVE in t:
        return NEGATIVE
    if "TRUE" in t:
        return AFFIRMATIVE
    if "FALSE" in t:
        return NEGATIVE
    if t == "V" or _LONE_V.search(t):
        return AFFIRMATIVE
    if t == "F" or _LONE_F.search(t):
        return NEGATIVE
    return t


def extract_choice_letter(text: str, strict: bool = False) -> Optional[str]:
    if not text:
        return None
    patterns = _STRICT_CHOICE_PATTERNS if strict else _CHOICE_PATTERNS
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(match.lastindex).upper()
    return None


def format_choice(letter: str) -> str:
    return CHOICE_TEMPLATE.format(letter=letter)


def normalize_choice(text: str) -> str:
    t = text.strip()
    letter = extract_choice_letter(t)
    if letter:
        return format_choice(letter)
    return t


def normalize_discursive(text: str) -> str:
    return text.strip()


def normalize_answer(text: str, question_type: str) -> str:
    if question_type == "binary":
        return normalize_binary(text)
    if question_type == "choice":
        return normalize_choice(text)
    return normalize_discursive(text)


def canonical_value(answer: Optional[str], question_type: str) -> Optional[str]:
    """
    Read the votable value back from a normalized answer.

    Returns the binary token or the choice letter, or None when the answer
    carries no canonical value (discursive answers never do).
    """
    if not answer or not answer.strip():
        return None
    if question_type == "binary":
        token = normalize_binary(answer)
        return token if token in BINARY_TOKENS else None
    if question_type == "choice":
        return extract_choice_letter(answer, strict=True)
    return None
