"""Text normalization and token similarity helpers used by the scorers.

Matching is case-insensitive and works on simple word tokens. Stopwords are
dropped so that description boilerplate does not dominate overlap scores.
"""

import re
from collections import Counter
from typing import Iterable, List, Set

_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9+#.\-]*")

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in",
        "is", "it", "of", "on", "or", "our", "the", "to", "we", "with", "you",
        "your", "will", "role", "team", "work", "job",
    }
)


def normalize_for_matching(text: str) -> str:
    """Lowercase and collapse whitespace for substring comparisons.

    Args:
        text: Text to normalize

    Returns:
        Normalized text (empty string for None/blank input)

    Example:
        >>> normalize_for_matching("  New   York ")
        'new york'
    """
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.lower()).strip()


def tokenize(text: str) -> List[str]:
    """Split text into lowercase word tokens, dropping stopwords.

    Trailing punctuation is stripped so "python." and "python" are one token.

    Example:
        >>> tokenize("Data Analyst, Python & SQL")
        ['data', 'analyst', 'python', 'sql']
    """
    if not text:
        return []
    tokens = []
    for match in _TOKEN_PATTERN.finditer(text.lower()):
        token = match.group(0).rstrip(".-")
        if token and token not in STOPWORDS:
            tokens.append(token)
    return tokens


def token_set(values: Iterable[str]) -> Set[str]:
    """Tokenize every value and return the union of their tokens."""
    tokens: Set[str] = set()
    for value in values:
        tokens.update(tokenize(value))
    return tokens


def coverage(wanted: Set[str], available: Set[str]) -> float:
    """Fraction of wanted tokens present in available (0.0 when nothing is wanted).

    Example:
        >>> coverage({"python", "sql"}, {"python", "java"})
        0.5
    """
    if not wanted:
        return 0.0
    return len(wanted & available) / len(wanted)


def cosine_count_similarity(a: List[str], b: List[str]) -> float:
    """Cosine similarity between the token-count vectors of two token lists."""
    if not a or not b:
        return 0.0
    freq_a = Counter(a)
    freq_b = Counter(b)
    dot = sum(count * freq_b.get(token, 0) for token, count in freq_a.items())
    norm_a = sum(count * count for count in freq_a.values()) ** 0.5
    norm_b = sum(count * count for count in freq_b.values()) ** 0.5
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return round(dot / (norm_a * norm_b), 6)
