"""
Ingredient Matcher
==================

Scores how well a recipe ingredient line is covered by a pantry item name.

Tiers, checked in this order (first hit wins):
    100  exact       normalized strings are identical
     80  synonym     both strings belong to the same synonym group
     60  substring   one contains the other, both at least 3 characters
     40  overlap     at least half of the recipe words match a pantry word
      0  none

The score is not symmetric: word overlap is measured against the recipe
side, so match_score("ayam goreng", "ayam") and match_score("ayam", "ayam goreng")
can differ.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging

from pantry_rewards.services.text_normalizer import normalize
from pantry_rewards.services.ingredient_synonyms import are_synonyms

logger = logging.getLogger(__name__)

EXACT_SCORE = 100
SYNONYM_SCORE = 80
SUBSTRING_SCORE = 60
WORD_OVERLAP_SCORE = 40
NO_MATCH_SCORE = 0

# Minimum best score for an ingredient to count as available
MATCH_THRESHOLD = WORD_OVERLAP_SCORE

MIN_TERM_LENGTH = 3
MIN_WORD_OVERLAP_PERCENT = 50


@dataclass(frozen=True)
class MatchResult:
    """Best pantry match for one recipe ingredient"""
    ingredient: str
    matched_with: Optional[str]
    score: int

    @property
    def matched(self) -> bool:
        return self.score >= MATCH_THRESHOLD

    def to_dict(self):
        return {
            "ingredient": self.ingredient,
            "matched_with": self.matched_with,
            "match_score": self.score,
        }


def _word_overlap_percent(recipe_norm: str, pantry_norm: str) -> int:
    recipe_words = recipe_norm.split()
    pantry_words = [w for w in pantry_norm.split() if len(w) >= MIN_TERM_LENGTH]

    if not recipe_words:
        return 0

    matching = 0
    for rw in recipe_words:
        if len(rw) < MIN_TERM_LENGTH:  # "di", "ke", "2", ...
            continue
        if any(rw == pw or pw in rw or rw in pw for pw in pantry_words):
            matching += 1

    # Short recipe words still count in the denominator
    return matching * 100 // len(recipe_words)


def match_score(recipe_ingredient: str, pantry_name: str) -> int:
    """Score one recipe ingredient string against one pantry item name"""
    recipe_norm = normalize(recipe_ingredient)
    pantry_norm = normalize(pantry_name)

    if recipe_norm == pantry_norm:
        # Two empty strings are not a match
        return EXACT_SCORE if recipe_norm else NO_MATCH_SCORE

    if are_synonyms(recipe_norm, pantry_norm):
        return SYNONYM_SCORE

    if len(recipe_norm) >= MIN_TERM_LENGTH and len(pantry_norm) >= MIN_TERM_LENGTH:
        if pantry_norm in recipe_norm or recipe_norm in pantry_norm:
            return SUBSTRING_SCORE

    if _word_overlap_percent(recipe_norm, pantry_norm) >= MIN_WORD_OVERLAP_PERCENT:
        return WORD_OVERLAP_SCORE

    return NO_MATCH_SCORE


def best_match(recipe_ingredient: str, pantry_names: Sequence[str]) -> MatchResult:
    """Highest scoring pantry name for one ingredient; earlier names win ties"""
    best_name = None
    best_score = NO_MATCH_SCORE

    for name in pantry_names:
        score = match_score(recipe_ingredient, name)
        if score > best_score:
            best_score = score
            best_name = name
            if score == EXACT_SCORE:
                break

    return MatchResult(ingredient=recipe_ingredient, matched_with=best_name, score=best_score)


def match_all(
    recipe_ingredients: Sequence[str],
    pantry_names: Sequence[str],
) -> Tuple[int, int, List[MatchResult]]:
    """
    Match a whole ingredient list against the pantry.

    Returns:
        (matched_count, total_count, matches) where matches holds the
        ingredients whose best score cleared MATCH_THRESHOLD, in recipe order.
    """
    matches = []
    for ingredient in recipe_ingredients:
        result = best_match(ingredient, pantry_names)
        if result.matched:
            matches.append(result)

    return len(matches), len(recipe_ingredients), matches


def match_percentage(matched: int, total: int) -> int:
    """Integer percentage, truncated; 0 when there is nothing to match"""
    if total == 0:
        return 0
    return (matched * 100) // total
