#/backend/pantry_rewards/services/recipe_service.py
"""
Recipe recommendations from the user's pantry, plus the local recipe catalogue
imported from the provider.
"""

from typing import List, Optional, Tuple
import logging
import uuid

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pantry_rewards.core.config import settings
from pantry_rewards.core.exceptions import RecipeNotFoundError
from pantry_rewards.models.database import FoodItem, Recipe
from pantry_rewards.services.recipe_provider import (
    RECIPE_SOURCE, RecipeProviderClient, difficulty_from_tags, flatten_sections
)
from pantry_rewards.services.recipe_ranking import RankingResult, RecipeRankingPipeline

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
DEFAULT_SERVINGS = 4


def category_from_tags(tags) -> str:
    category = "main course"
    for tag in tags or []:
        name = (tag.get("name") or "").lower()
        if "sarapan" in name or "breakfast" in name:
            category = "breakfast"
        elif "dessert" in name or "kue" in name:
            category = "dessert"
        elif "camilan" in name or "snack" in name:
            category = "snack"
    return category


def instructions_from_steps(steps) -> List[str]:
    ordered = sorted(steps or [], key=lambda step: step.get("order") or 0)
    instructions = []
    for step in ordered:
        title = (step.get("title") or "").strip()
        text = (step.get("text") or "").strip()
        instructions.append(f"{title}: {text}" if title else text)
    return instructions


class RecipeService:
    """Recommendation and catalogue operations"""

    def __init__(
        self,
        db: Session,
        provider: Optional[RecipeProviderClient] = None,
        pipeline: Optional[RecipeRankingPipeline] = None,
    ):
        self.db = db
        self._provider = provider
        self.pipeline = pipeline or RecipeRankingPipeline(
            top_n=settings.recipe_top_n,
            fallback_size=settings.recipe_fallback_size,
        )

    @property
    def provider(self) -> RecipeProviderClient:
        # Catalogue reads never touch the provider, so it is built on first use
        if self._provider is None:
            self._provider = RecipeProviderClient()
        return self._provider

    def pantry_names(self, user_id: uuid.UUID) -> List[str]:
        """Names of the user's foods that still have stock"""
        rows = self.db.query(FoodItem.name).filter(
            FoodItem.user_id == user_id,
            FoodItem.quantity > 0
        ).all()
        return [row[0] for row in rows]

    async def recommend_for_user(self, user_id: uuid.UUID, top_n: Optional[int] = None) -> RankingResult:
        """
        Rank provider recipes against the user's pantry.

        An empty pantry skips scoring entirely and returns a small unscored
        set, so only `fallback_size` details are fetched.
        """
        names = self.pantry_names(user_id)

        if not names:
            logger.info(f"User {user_id} has an empty pantry, fetching unscored recipes")
            candidates = await self.provider.fetch_candidates(self.pipeline.fallback_size)
            return self.pipeline.rank_recipes(candidates, names)

        candidates = await self.provider.fetch_candidates(settings.recipe_fetch_limit)
        result = self.pipeline.rank_recipes(candidates, names, top_n=top_n)
        logger.info(f"Recommended {len(result)} recipes for user {user_id} (scored={result.scored})")
        return result

    # ========================================================================
    # CATALOGUE
    # ========================================================================

    def _find_imported(self, slug: str) -> Optional[Recipe]:
        return self.db.query(Recipe).filter(
            Recipe.external_id == slug,
            Recipe.source == RECIPE_SOURCE
        ).first()

    async def import_recipe(self, slug: str) -> Recipe:
        """Store a provider recipe locally; importing the same slug twice returns the first row"""
        existing = self._find_imported(slug)
        if existing:
            return existing

        detail = await self.provider.fetch_detail(slug)
        tags = detail.get("tags")

        recipe = Recipe(
            title=detail.get("title") or slug,
            description=detail.get("description"),
            image_url=detail.get("cover_url"),
            cook_time_min=detail.get("cooking_time"),
            servings=detail.get("serving_min") or detail.get("serving_max") or DEFAULT_SERVINGS,
            difficulty=difficulty_from_tags(tags).lower(),
            category=category_from_tags(tags),
            cuisine="Indonesian",
            ingredients=flatten_sections(detail.get("ingredient_type")),
            instructions=instructions_from_steps(detail.get("cooking_step")),
            external_id=slug,
            source=RECIPE_SOURCE,
            source_url=f"https://www.yummy.co.id/recipe/{slug}",
        )
        self.db.add(recipe)
        try:
            self.db.commit()
        except IntegrityError:
            # Imported by a parallel request
            self.db.rollback()
            existing = self._find_imported(slug)
            if existing:
                return existing
            raise

        self.db.refresh(recipe)
        logger.info(f"Imported recipe '{recipe.title}' ({slug})")
        return recipe

    def get_recipe(self, recipe_id: uuid.UUID) -> Recipe:
        recipe = self.db.query(Recipe).filter(Recipe.id == recipe_id).first()
        if not recipe:
            raise RecipeNotFoundError(f"Recipe {recipe_id} not found")
        return recipe

    def list_recipes(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
    ) -> Tuple[List[Recipe], int]:
        page = max(page, 1)
        limit = limit if limit >= 1 else DEFAULT_PAGE_SIZE

        query = self.db.query(Recipe)
        if search:
            query = query.filter(or_(
                Recipe.title.ilike(f"%{search}%"),
                Recipe.description.ilike(f"%{search}%"),
            ))

        total = query.count()
        recipes = (
            query.order_by(Recipe.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return recipes, total
