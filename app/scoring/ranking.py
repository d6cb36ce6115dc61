from typing import List

from app.config import settings
from app.models import RestaurantGroup, ScoredResult


class Ranker:
    """Ordres de tri des résultats. `sorted` est stable : les ex aequo gardent l'ordre d'entrée."""

    def rank(self, results: List[ScoredResult]) -> List[ScoredResult]:
        return sorted(results, key=lambda r: -r.relevance_score)

    def rank_by_distance(self, results: List[ScoredResult]) -> List[ScoredResult]:
        # Distance inconnue en dernier
        return sorted(
            results,
            key=lambda r: (r.distance_km is None, r.distance_km or 0.0),
        )

    def rank_restaurant_groups(self, groups: List[RestaurantGroup]) -> List[RestaurantGroup]:
        """Note décroissante, puis nombre d'avis décroissant, puis distance croissante."""
        def key(group: RestaurantGroup):
            restaurant = group.restaurant
            distance = restaurant.distance_km
            if distance is None:
                distance = settings.UNKNOWN_DISTANCE_KM
            return (-restaurant.rating_average, -restaurant.rating_count, distance)

        return sorted(groups, key=key)
