"""Service de recherche des restaurants proches (GET /restaurants/nearby)."""
import time
from typing import Optional

from app.config import settings
from app.db.repository import SearchRepository
from app.logger import logger
from app.models import GeoPoint, NearbyResponse
from app.search.search_utils import SearchUtils


class NearbyService:  # pylint: disable=too-few-public-methods
    """Restaurants actifs dans un rayon, du plus proche au plus lointain."""

    def __init__(self, repository: SearchRepository):
        self.repository = repository
        self.utils = SearchUtils()

    async def find_nearby(
        self,
        location: GeoPoint,
        radius_km: Optional[float] = None,
        limit: int = settings.NEARBY_DEFAULT_LIMIT,
    ) -> NearbyResponse:
        """
        Recherche les restaurants autour d'un point.

        Le SQL ne filtre que sur l'enveloppe du rayon ; la distance exacte et
        le score (note et distance, sans texte) sont calculés ici.
        """
        start_time = time.time()
        radius_km = radius_km or settings.NEARBY_RADIUS_KM

        candidates = await self.repository.find_restaurants_in_box(
            location, radius_km, settings.CANDIDATE_LIMIT
        )
        scored = self.utils.score_candidates(
            candidates, query=None, requester=location, radius_km=radius_km
        )
        restaurants = self.utils.ranker.rank_by_distance(scored)[:limit]

        logger.info(
            "Recherche de proximité ({lat}, {lng}) r={radius} km : {count} restaurants "
            "sur {candidates} candidats en {duration:.4f}s",
            lat=location.latitude, lng=location.longitude, radius=radius_km,
            count=len(restaurants), candidates=len(candidates),
            duration=time.time() - start_time,
        )

        return NearbyResponse(
            restaurants=restaurants,
            user_location=location,
            search_radius=radius_km,
            total=len(restaurants),
        )
