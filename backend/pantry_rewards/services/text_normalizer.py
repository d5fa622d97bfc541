"""
Canonical form for ingredient and food names
"""

import unicodedata


def normalize(text: str) -> str:
    """
    Lower-case, strip diacritics and collapse whitespace.

    "  Crème   Brûlée " -> "creme brulee". Never fails; None and "" give "".
    """
    if not text:
        return ""

    text = text.lower()

    # NFD splits accented letters into base + combining mark (category Mn)
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    text = unicodedata.normalize("NFC", stripped)

    return " ".join(text.split())
