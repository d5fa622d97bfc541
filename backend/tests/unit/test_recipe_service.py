"""
Test recommendations and recipe import with a fake provider
"""

import asyncio
import uuid

import pytest

from pantry_rewards.core.exceptions import RecipeNotFoundError
from pantry_rewards.models.database import Recipe
from pantry_rewards.services.recipe_ranking import RecipeCandidate, RecipeRankingPipeline
from pantry_rewards.services.recipe_service import RecipeService, category_from_tags, instructions_from_steps

pytestmark = pytest.mark.unit


class FakeProvider:
    def __init__(self, candidates=None, details=None):
        self.candidates = candidates or []
        self.details = details or {}
        self.fetch_limits = []
        self.detail_calls = []

    async def fetch_candidates(self, limit):
        self.fetch_limits.append(limit)
        return self.candidates[:limit]

    async def fetch_detail(self, slug):
        self.detail_calls.append(slug)
        return self.details[slug]


CANDIDATES = [
    RecipeCandidate(id=str(i), title=title, ingredients=ingredients)
    for i, (title, ingredients) in enumerate([
        ("Nasi Goreng", ["nasi", "telur", "kecap manis", "bawang putih"]),
        ("Telur Dadar", ["telur", "garam"]),
        ("Sup Ayam", ["ayam", "wortel", "kentang", "seledri"]),
        ("Pisang Goreng", ["pisang", "tepung terigu", "gula"]),
        ("Tempe Orek", ["tempe", "kecap manis", "cabai"]),
        ("Bakwan", ["tepung terigu", "kol", "wortel"]),
    ])
]

SOP_BUNTUT = {
    "title": "Sop Buntut",
    "description": "Sop buntut sapi",
    "cover_url": "https://img.test/sop.jpg",
    "cooking_time": 120,
    "serving_min": 4,
    "serving_max": 6,
    "ingredient_type": [{"name": "Bahan", "ingredients": [{"description": "1 kg buntut sapi"}]}],
    "cooking_step": [
        {"title": "Sajikan", "text": "Sajikan hangat", "order": 2},
        {"title": "Rebus", "text": "Rebus buntut", "order": 1},
    ],
    "tags": [{"name": "Sulit"}],
}


def make_service(test_db, provider):
    return RecipeService(test_db, provider=provider, pipeline=RecipeRankingPipeline(top_n=5, fallback_size=5))


def test_empty_pantry_fetches_only_fallback(test_db, test_user):
    provider = FakeProvider(CANDIDATES)

    result = asyncio.run(make_service(test_db, provider).recommend_for_user(test_user.id))

    assert provider.fetch_limits == [5]
    assert not result.scored
    assert len(result.recipes) == 5


def test_recommend_ranks_by_pantry(test_db, test_user, food_factory):
    food_factory("Telur")
    food_factory("Garam")
    food_factory("Wortel", quantity=0)
    provider = FakeProvider(CANDIDATES)

    result = asyncio.run(make_service(test_db, provider).recommend_for_user(test_user.id))

    assert provider.fetch_limits == [15]
    assert result.scored
    best = result.recommendations[0]
    assert best.recipe.title == "Telur Dadar"
    assert best.match_percentage == 100
    assert best.can_make
    # out-of-stock food is not part of the pantry
    assert all(m.matched_with != "Wortel" for s in result.recommendations for m in s.matches)


def test_pantry_names_only_stocked_items(test_db, test_user, second_test_user, food_factory):
    food_factory("Telur")
    food_factory("Susu", quantity=0)
    food_factory("Keju", user=second_test_user)

    assert RecipeService(test_db, provider=FakeProvider()).pantry_names(test_user.id) == ["Telur"]


def test_import_recipe_is_idempotent(test_db):
    provider = FakeProvider(details={"sop-buntut": SOP_BUNTUT})
    service = make_service(test_db, provider)

    recipe = asyncio.run(service.import_recipe("sop-buntut"))
    again = asyncio.run(service.import_recipe("sop-buntut"))

    assert again.id == recipe.id
    assert provider.detail_calls == ["sop-buntut"]
    assert test_db.query(Recipe).count() == 1
    assert recipe.source == "yummy"
    assert recipe.external_id == "sop-buntut"
    assert recipe.servings == 4
    assert recipe.difficulty == "hard"
    assert recipe.ingredients == {"Bahan": ["1 kg buntut sapi"]}
    assert recipe.instructions == ["Rebus: Rebus buntut", "Sajikan: Sajikan hangat"]


def test_list_and_get_recipes(test_db):
    provider = FakeProvider(details={"sop-buntut": SOP_BUNTUT})
    service = make_service(test_db, provider)
    recipe = asyncio.run(service.import_recipe("sop-buntut"))

    recipes, total = service.list_recipes(search="buntut")
    assert total == 1
    assert recipes[0].id == recipe.id
    assert service.list_recipes(search="rendang") == ([], 0)
    assert service.get_recipe(recipe.id).title == "Sop Buntut"

    with pytest.raises(RecipeNotFoundError):
        service.get_recipe(uuid.uuid4())


def test_catalogue_reads_do_not_build_a_provider(test_db, monkeypatch):
    def no_provider(*args, **kwargs):
        raise AssertionError("provider client should not be created")

    monkeypatch.setattr("pantry_rewards.services.recipe_service.RecipeProviderClient", no_provider)
    service = RecipeService(test_db)

    assert service.list_recipes() == ([], 0)
    with pytest.raises(RecipeNotFoundError):
        service.get_recipe(uuid.uuid4())


def test_category_and_instructions_helpers():
    assert category_from_tags([{"name": "Menu Sarapan"}]) == "breakfast"
    assert category_from_tags([{"name": "Kue Basah"}]) == "dessert"
    assert category_from_tags([]) == "main course"
    assert instructions_from_steps([{"title": "", "text": "Aduk rata", "order": 1}]) == ["Aduk rata"]
