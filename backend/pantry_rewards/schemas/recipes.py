from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime
import uuid

class IngredientMatchResponse(BaseModel):
    ingredient: str
    matched_with: Optional[str] = None
    match_score: int

class RecipeCandidateResponse(BaseModel):
    id: str
    title: str
    slug: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    cooking_time: Optional[str] = None
    serving: Optional[str] = None
    difficulty: Optional[str] = None
    ingredients: List[str] = []

class RecipeRecommendation(BaseModel):
    recipe: RecipeCandidateResponse
    matched_count: int
    total_count: int
    match_percentage: int
    can_make: bool
    matched_ingredients: List[IngredientMatchResponse] = []

class RecommendationResponse(BaseModel):
    scored: bool
    recommendations: List[RecipeRecommendation] = []
    recipes: List[RecipeCandidateResponse] = []

class RecipeImportRequest(BaseModel):
    slug: str

class RecipeResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    cook_time_min: Optional[int] = None
    servings: Optional[int] = None
    difficulty: Optional[str] = None
    category: Optional[str] = None
    cuisine: Optional[str] = None
    ingredients: Dict[str, List[str]] = {}
    instructions: List[str] = []
    external_id: Optional[str] = None
    source: Optional[str] = None
    source_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class RecipeListResponse(BaseModel):
    recipes: List[RecipeResponse]
    total: int
    page: int
    limit: int
