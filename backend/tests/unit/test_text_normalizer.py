"""
Test text normalization used by the ingredient matcher
"""

import pytest

from pantry_rewards.services.text_normalizer import normalize

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("raw, expected", [
    ("  Crème   Brûlée ", "creme brulee"),
    ("Gula PASIR", "gula pasir"),
    ("bawang\tputih\n", "bawang putih"),
    ("jalapeño", "jalapeno"),
    ("tomat", "tomat"),
])
def test_normalize(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "   ", "\n\t"])
def test_normalize_empty_input_gives_empty_string(raw):
    assert normalize(raw) == ""


def test_normalize_is_idempotent():
    once = normalize("  Daging   SAPI Giling ")
    assert normalize(once) == once
