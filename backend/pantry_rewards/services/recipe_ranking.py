"""
Recipe ranking pipeline: scores fetched recipe candidates against a user's
pantry and returns the best shortlist.

The pipeline receives already-fetched candidates and never performs I/O,
so it is safe to run concurrently across requests.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import logging

from pantry_rewards.services.ingredient_matcher import (
    MatchResult, match_all, match_percentage
)

logger = logging.getLogger(__name__)

CAN_MAKE_PERCENTAGE = 70


@dataclass
class RecipeCandidate:
    """Recipe as supplied by the recipe provider"""
    id: str
    title: str
    ingredients: List[str] = field(default_factory=list)
    slug: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    cooking_time: Optional[str] = None
    serving: Optional[str] = None
    difficulty: Optional[str] = None
    ingredient_sections: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class RecipeScore:
    recipe: RecipeCandidate
    matched_count: int
    total_count: int
    match_percentage: int
    matches: List[MatchResult] = field(default_factory=list)

    @property
    def can_make(self) -> bool:
        return self.match_percentage >= CAN_MAKE_PERCENTAGE


@dataclass
class RankingResult:
    """
    Either a scored shortlist (scored=True) or the unscored fallback set
    returned when nothing could be matched.
    """
    scored: bool
    recommendations: List[RecipeScore] = field(default_factory=list)
    fallback: List[RecipeCandidate] = field(default_factory=list)

    @property
    def recipes(self) -> List[RecipeCandidate]:
        if self.scored:
            return [score.recipe for score in self.recommendations]
        return list(self.fallback)

    def __len__(self) -> int:
        return len(self.recommendations) if self.scored else len(self.fallback)


def score_recipe(candidate: RecipeCandidate, pantry_names: Sequence[str]) -> Optional[RecipeScore]:
    """Score one candidate; None when it has no ingredient text to match"""
    ingredients = [text for text in candidate.ingredients if text and text.strip()]
    if not ingredients:
        return None

    matched_count, total_count, matches = match_all(ingredients, pantry_names)
    return RecipeScore(
        recipe=candidate,
        matched_count=matched_count,
        total_count=total_count,
        match_percentage=match_percentage(matched_count, total_count),
        matches=matches,
    )


class RecipeRankingPipeline:
    """Match percentage ranking with an unscored fallback"""

    def __init__(self, top_n: int = 5, fallback_size: int = 5):
        self.top_n = top_n
        self.fallback_size = fallback_size

    def _fallback(self, candidates: Sequence[RecipeCandidate]) -> RankingResult:
        return RankingResult(scored=False, fallback=list(candidates[:self.fallback_size]))

    def rank_recipes(
        self,
        candidates: Sequence[RecipeCandidate],
        pantry_names: Sequence[str],
        top_n: Optional[int] = None,
    ) -> RankingResult:
        top_n = self.top_n if top_n is None else top_n

        if not pantry_names:
            logger.info("Empty pantry, returning %d unscored recipes", min(len(candidates), self.fallback_size))
            return self._fallback(candidates)

        scored = []
        for candidate in candidates:
            score = score_recipe(candidate, pantry_names)
            if score is None:
                logger.debug(f"Skipping recipe without ingredients: {candidate.title}")
                continue
            scored.append(score)

        if not scored:
            logger.info("No recipe could be scored, returning unscored fallback")
            return self._fallback(candidates)

        # sorted() is stable, equal keys keep provider order
        scored = sorted(scored, key=lambda s: (-s.match_percentage, -s.matched_count))

        logger.info(
            f"Ranked {len(scored)} recipes against {len(pantry_names)} pantry items, "
            f"best match {scored[0].match_percentage}%"
        )
        return RankingResult(scored=True, recommendations=scored[:top_n])


def rank_recipes(
    candidates: Sequence[RecipeCandidate],
    pantry_names: Sequence[str],
    top_n: int = 5,
) -> RankingResult:
    """Module-level shortcut with default fallback size"""
    return RecipeRankingPipeline(top_n=top_n).rank_recipes(candidates, pantry_names)
