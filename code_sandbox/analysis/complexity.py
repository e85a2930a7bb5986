"""
Static complexity metrics computed from source text alone.

This is a token-counting approximation, not an AST analysis: keywords are
matched on word boundaries and operators literally, including inside
strings and comments. Nothing is ever executed.
"""

import math
import re
from typing import Dict, Pattern, Tuple

from pydantic import BaseModel

C_FAMILY_TOKENS = ("if", "else", "while", "for", "switch", "case", "catch", "&&", "||", "?")

COMPLEXITY_TOKENS: Dict[str, Tuple[str, ...]] = {
    "javascript": C_FAMILY_TOKENS,
    "typescript": C_FAMILY_TOKENS,
    "java": C_FAMILY_TOKENS,
    "c": ("if", "else", "while", "for", "switch", "case", "&&", "||", "?"),
    "cpp": C_FAMILY_TOKENS,
    "python": ("if", "elif", "else", "while", "for", "try", "except", "and", "or"),
    "go": ("if", "else", "for", "switch", "case", "select", "&&", "||"),
    "rust": ("if", "else", "while", "for", "loop", "match", "&&", "||", "?"),
}

LANGUAGE_ALIASES = {
    "js": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "py": "python",
    "python3": "python",
    "c++": "cpp",
    "golang": "go",
    "rs": "rust",
}

# Ternary/try operator, excluding optional chaining (?.) and nullish coalescing (??)
_QUESTION_MARK = r"(?<!\?)\?(?![.?])"


class ComplexityReport(BaseModel):
    cyclomatic_complexity: int
    lines_of_code: int
    maintainability_index: int
    cognitive_complexity: int


def _token_pattern(token: str) -> Pattern[str]:
    if token == "?":
        return re.compile(_QUESTION_MARK)
    if token.isalpha():
        return re.compile(rf"\b{token}\b")
    return re.compile(re.escape(token))


_PATTERNS: Dict[str, Tuple[Pattern[str], ...]] = {
    language: tuple(_token_pattern(token) for token in tokens)
    for language, tokens in COMPLEXITY_TOKENS.items()
}


def _patterns_for(language: str) -> Tuple[Pattern[str], ...]:
    key = language.strip().lower()
    key = LANGUAGE_ALIASES.get(key, key)
    return _PATTERNS.get(key, _PATTERNS["javascript"])


def analyze(source_code: str, language: str) -> ComplexityReport:
    """
    Compute structural metrics for a piece of source code.

    Args:
        source_code: Code to analyze (never executed)
        language: Language key or alias; unknown languages use the C-family table

    Returns:
        ComplexityReport with integer metrics
    """
    lines_of_code = sum(1 for line in source_code.split("\n") if line.strip())

    decision_points = sum(len(pattern.findall(source_code)) for pattern in _patterns_for(language))
    cyclomatic = 1 + decision_points
    # Cognitive complexity mirrors the decision count in this simplified model
    cognitive = decision_points

    # Approximated Halstead volume; log arguments are floored at 1 so tiny inputs stay finite
    loc = max(lines_of_code, 1)
    halstead_volume = loc * math.log2(loc)
    maintainability = (
        171
        - 5.2 * math.log(max(halstead_volume, 1.0))
        - 0.23 * cyclomatic
        - 16.2 * math.log(loc)
    )

    return ComplexityReport(
        cyclomatic_complexity=cyclomatic,
        lines_of_code=lines_of_code,
        maintainability_index=int(round(max(0.0, maintainability))),
        cognitive_complexity=cognitive,
    )
