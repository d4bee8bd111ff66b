"""Building blocks for rule patterns.

Rule catalogs repeat the same few shapes over and over (dates, IBANs,
bank reference codes, lists of merchant names); these helpers keep them
consistent.
"""

import re

_ALTERNATION_GROUP_RE = re.compile(r"\(([^)]+)\)")


def word_boundary(pattern: str) -> str:
    """Wrap a pattern in word boundaries."""
    return rf"\b{pattern}\b"


def partial_match(pattern: str) -> str:
    """Allow anything before and after the pattern (rewrites the whole text)."""
    return f".*{pattern}.*"


def alternation(*terms: str) -> str:
    """Group a list of alternatives: ``alternation("A", "B") == "(A|B)"``."""
    return f"({'|'.join(terms)})"


def date_pattern() -> str:
    """Short dates such as ``12/04``, ``12.04.23`` or ``del 12/04/2023``."""
    return r"(\b|del )\d{2}([./:])\d{2}(\2\d{2,4})?\b"


def iban_pattern() -> str:
    """Abbreviated IBAN-like tokens as printed in statement descriptions."""
    return r"\b[A-Z]{2}\d{4}[A-Z]{3}\d\b"


def bank_code_pattern() -> str:
    """Reference codes: short letter prefix, 3+ digits/separators, short suffix."""
    return r"\b[A-Z]{0,4}[0-9:,_/-]{3,}[A-Z]{0,6}\b"


def currency_pattern(*currencies: str) -> str:
    """Any of the given currency codes as a whole word."""
    return rf"\b({'|'.join(currencies)})\b"


def placeholder(name: str) -> str:
    """Literal ``{name}`` placeholder."""
    return rf"\{{{name}\}}"


def multiple_spaces() -> str:
    return r"\s+"


def is_alternation(pattern: str) -> bool:
    return "|" in pattern


def extract_alternation_terms(pattern: str) -> list[str]:
    """Terms of the first parenthesised alternation in ``pattern``."""
    match = _ALTERNATION_GROUP_RE.search(pattern)
    return match.group(1).split("|") if match else []
