"""
Recipe Provider Client
======================

Minimal client for the external recipe catalogue:
1. Recipe list (id, title, slug)
2. Recipe detail (sectioned ingredients, steps, tags, cover image)

Responses are cached in Redis. The cache is an optimisation only: when Redis
is down the client logs and goes straight to the provider.
"""

from contextlib import asynccontextmanager
from typing import Dict, List, Optional
import json
import logging

import httpx
import redis

from pantry_rewards.core.config import settings
from pantry_rewards.core.exceptions import RecipeProviderError
from pantry_rewards.services.recipe_ranking import RecipeCandidate

logger = logging.getLogger(__name__)

RECIPE_SOURCE = "yummy"
DEFAULT_DIFFICULTY = "Medium"


def ingredient_line(ingredient) -> Optional[str]:
    """Trimmed description of one ingredient entry, None when unusable"""
    if not isinstance(ingredient, dict):
        return None
    description = ingredient.get("description")
    if not isinstance(description, str):
        return None
    return description.strip() or None


def flatten_sections(sections: List[Dict]) -> Dict[str, List[str]]:
    """{"Bahan utama": ["500 gr ayam", ...], ...} from the provider's ingredient_type list"""
    flattened = {}
    for section in sections or []:
        if not isinstance(section, dict):
            continue
        name = section.get("name") or "Bahan"
        lines = [ingredient_line(ing) for ing in section.get("ingredients") or []]
        flattened.setdefault(name, []).extend(line for line in lines if line)
    return flattened


def difficulty_from_tags(tags: List[Dict]) -> str:
    for tag in tags or []:
        name = (tag.get("name") or "").lower()
        if "mudah" in name or "easy" in name:
            return "Easy"
        if "sulit" in name or "hard" in name:
            return "Hard"
    return DEFAULT_DIFFICULTY


def serving_label(serving_min: int, serving_max: int) -> Optional[str]:
    if not serving_min and not serving_max:
        return None
    if serving_max and serving_max > serving_min:
        return f"{serving_min}-{serving_max} porsi"
    return f"{serving_min or serving_max} porsi"


def candidate_from_detail(summary: Dict, detail: Dict) -> RecipeCandidate:
    sections = flatten_sections(detail.get("ingredient_type"))
    cooking_time = detail.get("cooking_time")
    return RecipeCandidate(
        id=str(summary.get("id") or detail.get("id")),
        title=detail.get("title") or summary.get("title", ""),
        slug=summary.get("slug") or detail.get("slug"),
        description=detail.get("description"),
        thumbnail_url=detail.get("cover_url"),
        cooking_time=f"{cooking_time} menit" if cooking_time else None,
        serving=serving_label(detail.get("serving_min") or 0, detail.get("serving_max") or 0),
        difficulty=difficulty_from_tags(detail.get("tags")),
        ingredients=[line for lines in sections.values() for line in lines],
        ingredient_sections=sections,
    )


class RecipeProviderClient:
    """
    Client for the recipe provider's public JSON API.

    Both the Redis client and the httpx client can be injected; without an
    httpx client a short-lived AsyncClient is opened per request.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_ttl: Optional[int] = None,
        redis_client=None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.recipe_provider_base_url).rstrip("/")
        self.timeout = timeout or settings.recipe_provider_timeout_seconds
        self.cache_ttl = cache_ttl or settings.recipe_cache_ttl_seconds
        self.redis_client = redis_client if redis_client is not None else redis.from_url(settings.redis_url)
        self.http_client = http_client

    # ========================================================================
    # CACHE
    # ========================================================================

    def _cache_get(self, key: str) -> Optional[Dict]:
        try:
            cached = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Recipe cache read failed for {key}: {e}")
            return None
        if not cached:
            return None
        logger.info(f"Cache hit for {key}")
        return json.loads(cached)

    def _cache_set(self, key: str, value: Dict) -> None:
        try:
            self.redis_client.setex(key, self.cache_ttl, json.dumps(value))
        except redis.RedisError as e:
            logger.warning(f"Recipe cache write failed for {key}: {e}")

    # ========================================================================
    # HTTP
    # ========================================================================

    @asynccontextmanager
    async def _client(self):
        if self.http_client is not None:
            yield self.http_client
            return
        async with httpx.AsyncClient() as client:
            yield client

    async def _get_json(self, path: str, cache_key: str) -> Dict:
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        url = f"{self.base_url}{path}"
        try:
            async with self._client() as client:
                response = await client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.error(f"Recipe provider timeout: {url}")
            raise RecipeProviderError(f"Recipe provider timed out: {path}") from e
        except httpx.HTTPError as e:
            logger.error(f"Recipe provider request failed: {url} - {e}")
            raise RecipeProviderError(f"Recipe provider unreachable: {path}") from e

        if response.status_code != 200:
            logger.error(f"Recipe provider error: {response.status_code} - {response.text[:200]}")
            raise RecipeProviderError(f"Recipe provider returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RecipeProviderError("Recipe provider returned invalid JSON") from e

        # The provider repeats the status inside the body
        if payload.get("status") != 200:
            message = payload.get("message") or "unknown error"
            logger.error(f"Recipe provider rejected {path}: {message}")
            raise RecipeProviderError(f"Recipe provider error: {message}")

        data = payload.get("data") or {}
        self._cache_set(cache_key, data)
        return data

    # ========================================================================
    # RECIPES
    # ========================================================================

    async def list_recipes(self) -> List[Dict]:
        """[{'id': ..., 'title': ..., 'slug': ...}, ...] in provider order"""
        data = await self._get_json("/recipes", f"{RECIPE_SOURCE}:recipes")
        return data.get("recipes") or []

    async def fetch_detail(self, slug: str) -> Dict:
        """Raw recipe detail: title, cover_url, ingredient_type, cooking_step, tags, ..."""
        return await self._get_json(f"/recipe/detail/{slug}", f"{RECIPE_SOURCE}:recipe:{slug}")

    async def fetch_candidates(self, limit: int) -> List[RecipeCandidate]:
        """
        First `limit` recipes with their ingredient lists.

        A recipe whose detail cannot be fetched is still returned, without
        ingredients, so the list keeps the provider's order.
        """
        summaries = (await self.list_recipes())[:max(limit, 0)]
        logger.info(f"Fetching details for {len(summaries)} recipes")

        candidates = []
        for summary in summaries:
            slug = summary.get("slug")
            try:
                detail = await self.fetch_detail(slug)
            except RecipeProviderError as e:
                logger.warning(f"Detail fetch failed for recipe {slug}, keeping basic info: {e.detail}")
                candidates.append(RecipeCandidate(
                    id=str(summary.get("id")),
                    title=summary.get("title", ""),
                    slug=slug,
                ))
                continue
            candidates.append(candidate_from_detail(summary, detail))

        return candidates
