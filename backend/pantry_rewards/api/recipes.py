# backend/pantry_rewards/api/recipes.py
"""
Recipe recommendations from the pantry, plus the imported recipe catalogue.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
import uuid
import logging

from pantry_rewards.models.database import get_db, User
from pantry_rewards.schemas.recipes import (
    IngredientMatchResponse, RecipeCandidateResponse, RecipeImportRequest,
    RecipeListResponse, RecipeRecommendation, RecipeResponse, RecommendationResponse
)
from pantry_rewards.services.auth import get_current_user_dependency as get_current_user
from pantry_rewards.services.recipe_provider import RecipeProviderClient
from pantry_rewards.services.recipe_ranking import RankingResult, RecipeCandidate
from pantry_rewards.services.recipe_service import RecipeService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/recipes", tags=["Recipes"])


def get_recipe_provider() -> RecipeProviderClient:
    return RecipeProviderClient()


def to_candidate_response(candidate: RecipeCandidate) -> RecipeCandidateResponse:
    return RecipeCandidateResponse(
        id=candidate.id,
        title=candidate.title,
        slug=candidate.slug,
        description=candidate.description,
        thumbnail_url=candidate.thumbnail_url,
        cooking_time=candidate.cooking_time,
        serving=candidate.serving,
        difficulty=candidate.difficulty,
        ingredients=candidate.ingredients,
    )


def to_recommendation_response(result: RankingResult) -> RecommendationResponse:
    recommendations = [
        RecipeRecommendation(
            recipe=to_candidate_response(score.recipe),
            matched_count=score.matched_count,
            total_count=score.total_count,
            match_percentage=score.match_percentage,
            can_make=score.can_make,
            matched_ingredients=[IngredientMatchResponse(**m.to_dict()) for m in score.matches],
        )
        for score in result.recommendations
    ]
    return RecommendationResponse(
        scored=result.scored,
        recommendations=recommendations,
        recipes=[to_candidate_response(recipe) for recipe in result.recipes],
    )


@router.get("/recommendations", response_model=RecommendationResponse)
async def recommend(
    limit: Optional[int] = Query(None, ge=1, le=20),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: RecipeProviderClient = Depends(get_recipe_provider)
):
    """Recipes ranked by how much of their ingredient list the pantry covers"""
    result = await RecipeService(db, provider=provider).recommend_for_user(current_user.id, top_n=limit)
    return to_recommendation_response(result)


@router.post("/import", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
async def import_recipe(
    payload: RecipeImportRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: RecipeProviderClient = Depends(get_recipe_provider)
):
    return await RecipeService(db, provider=provider).import_recipe(payload.slug)


@router.get("", response_model=RecipeListResponse)
def list_recipes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    db: Session = Depends(get_db)
):
    recipes, total = RecipeService(db).list_recipes(page=page, limit=limit, search=search)
    return RecipeListResponse(
        recipes=[RecipeResponse.model_validate(recipe) for recipe in recipes],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/{recipe_id}", response_model=RecipeResponse)
def get_recipe(
    recipe_id: uuid.UUID,
    db: Session = Depends(get_db)
):
    return RecipeService(db).get_recipe(recipe_id)
