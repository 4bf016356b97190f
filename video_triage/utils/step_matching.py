"""
Step correlation - fuzzy matching of executed actions against authored steps.

This is a cheap lexical heuristic: no stemming, synonyms or locale handling.
"click login" and "clicks the login button" only match through token overlap.
"""
from typing import Set

ACTION_KEYWORDS = (
    "click", "tap", "press", "select", "enter", "type", "input",
    "open", "close", "navigate", "scroll", "swipe",
    "verify", "check", "assert", "wait", "expect",
)

MIN_SHARED_TOKENS = 2
OVERLAP_THRESHOLD = 0.4


def tokenize(text: str) -> Set[str]:
    """Lower-cased, whitespace-delimited tokens."""
    return set((text or "").lower().split())


def is_action_log(message: str) -> bool:
    """Check if a log message describes a test action."""
    lower = (message or "").lower()
    return any(keyword in lower for keyword in ACTION_KEYWORDS)


def token_overlap(a: str, b: str) -> float:
    """Jaccard overlap of the two token sets."""
    tokens_a, tokens_b = tokenize(a), tokenize(b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def steps_match(executed_text: str, expected_text: str) -> bool:
    """
    Decide whether an executed action corresponds to an expected step.

    First true rule wins:
      1. both contain the same action keyword and share at least two
         other tokens
      2. one is a case-insensitive substring of the other
      3. token overlap is at least 40%
    """
    executed = (executed_text or "").lower()
    expected = (expected_text or "").lower()

    common = tokenize(executed) & tokenize(expected)
    for keyword in ACTION_KEYWORDS:
        if keyword in executed and keyword in expected:
            if len(common - {keyword}) >= MIN_SHARED_TOKENS:
                return True

    if executed in expected or expected in executed:
        return True

    return token_overlap(executed, expected) >= OVERLAP_THRESHOLD
