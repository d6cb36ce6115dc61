"""Module contenant le service de recherche principal (POST /search)."""
import time
from dataclasses import dataclass
from typing import List, Optional

import psutil
from redis.exceptions import RedisError

from app.cache import CacheManager, cache_manager
from app.config import settings
from app.db.repository import SearchRepository
from app.exceptions import InvalidRequestError
from app.logger import logger
from app.models import (
    GeoPoint,
    RankableEntity,
    SearchRequest,
    SearchResponse,
    SearchType,
)
from app.search.favorite_pastille import FavoritePastilleService
from app.search.search_utils import SearchUtils


@dataclass
class SearchContext:
    """Contexte partagé pour les opérations de recherche."""
    request: SearchRequest
    query: str
    requester: Optional[GeoPoint]
    radius_km: float
    start_time: float


class SearchService:
    """Service de recherche : candidats SQL + classement SearchUtils + cache Redis."""

    def __init__(
        self,
        repository: SearchRepository,
        favorite_pastille_service: FavoritePastilleService,
        cache: Optional[CacheManager] = None,
    ):
        self.repository = repository
        self.favorite_pastille_service = favorite_pastille_service
        self.utils = SearchUtils()
        self.cache = cache or cache_manager

    def _cache_key(self, request: SearchRequest) -> str:
        """La clé ignore la pagination : la liste complète est mise en cache."""
        cache_request = request.model_copy(update={'limit': -1, 'offset': 0})
        return f"search:{cache_request.model_dump_json()}"

    async def _resolve_location(self, request: SearchRequest) -> Optional[GeoPoint]:
        """Position explicite, sinon l'adresse "home" de l'utilisateur."""
        if request.location is not None:
            return request.location
        if request.user_id:
            return await self.repository.get_home_location(request.user_id)
        return None

    async def _fetch_candidates(self, ctx: SearchContext) -> List[RankableEntity]:
        """Charge l'instantané des candidats pour cette requête."""
        request = ctx.request
        candidates: List[RankableEntity] = []

        if request.search_type in (SearchType.ALL, SearchType.RESTAURANTS):
            candidates.extend(await self.repository.search_restaurants(
                query=ctx.query,
                limit=settings.CANDIDATE_LIMIT,
                cuisine_types=request.filters.cuisine_types,
                min_rating=request.filters.rating,
                near=ctx.requester,
                radius_km=ctx.radius_km,
            ))

        if request.search_type in (SearchType.ALL, SearchType.DISHES):
            candidates.extend(await self.repository.search_dishes(
                query=ctx.query,
                limit=settings.CANDIDATE_LIMIT,
            ))
        return candidates

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Effectue une recherche en utilisant un système de cache.

        Args:
            request: Requête validée (texte, filtres, pagination, utilisateur)

        Returns:
            SearchResponse paginée ; `total` compte tous les résultats classés.

        Raises:
            InvalidRequestError: si le texte recherché ou le user_id est vide.
        """
        if not request.query or not request.query.strip():
            raise InvalidRequestError("Search query is required")
        if request.user_id is not None and not request.user_id.strip():
            raise InvalidRequestError("user_id must not be blank")

        cache_key = self._cache_key(request)
        full_response = None
        try:
            cached_result = await self.cache.get(cache_key)
        except RedisError as e:
            logger.warning("Cache indisponible ({error}), recherche directe", error=e)
            cached_result = None

        if cached_result:
            logger.info("Cache HIT for key: {key}", key=cache_key)
            full_response = SearchResponse.model_validate_json(cached_result)
        else:
            logger.info("Cache MISS for key: {key}", key=cache_key)
            full_response = await self._execute_search(request)
            try:
                await self.cache.set(
                    cache_key, full_response.model_dump_json(),
                    expire=settings.SEARCH_CACHE_TTL,
                )
            except RedisError as e:
                logger.warning("Échec de mise en cache : {error}", error=e)

        # Pagination après cache
        offset = request.offset
        page = full_response.results[offset: offset + request.limit]
        page = await self.favorite_pastille_service.append_favorite_pastille(
            results=page, user_id=request.user_id
        )
        return full_response.model_copy(update={'results': page})

    async def _execute_search(self, request: SearchRequest) -> SearchResponse:
        """Exécute la recherche sans cache et retourne la liste complète classée."""
        requester = await self._resolve_location(request)
        ctx = SearchContext(
            request=request,
            query=request.query.strip(),
            requester=requester,
            radius_km=request.filters.distance or settings.SEARCH_RADIUS_KM,
            start_time=time.time(),
        )

        candidates = await self._fetch_candidates(ctx)
        processed = self.utils.process_results(
            candidates=candidates,
            query=ctx.query,
            requester=ctx.requester,
            radius_km=ctx.radius_km,
        )

        duration = time.time() - ctx.start_time
        memory_mb = psutil.Process().memory_info().rss / 1024 / 1024

        logger.info(
            "Recherche (type: {search_type}, query: '{query}') : {total}/{before} résultats | "
            "Durée = {duration:.4f}s | RAM = {memory:.2f} Mo",
            search_type=request.search_type.value, query=ctx.query,
            total=processed['total'], before=processed['total_before_filter'],
            duration=duration, memory=memory_mb,
        )

        return SearchResponse(
            query=ctx.query,
            results=processed['results'],
            total=processed['total'],
            filters=request.filters,
            search_type=request.search_type,
            user_location=ctx.requester,
            search_radius=ctx.radius_km if ctx.requester else None,
            query_time_ms=duration * 1000,
            memory_used_mb=memory_mb,
        )
