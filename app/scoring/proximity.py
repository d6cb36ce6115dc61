"""Filtre de proximité : inclusion d'une entité selon un rayon."""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from app.config import settings
from app.models import GeoPoint, RankableEntity
from app.scoring.distance import GeoDistance, geo_distance


@dataclass(frozen=True)
class ProximityDecision:
    """Résultat du filtre pour une entité."""
    qualifies: bool
    distance_km: Optional[float] = None


class ProximityFilter:
    """Décide si une entité est dans le rayon du demandeur."""

    def __init__(self, distance: Optional[GeoDistance] = None):
        self.distance = distance or geo_distance

    def evaluate(
        self,
        requester: Optional[GeoPoint],
        target: Optional[GeoPoint],
        radius_km: float,
        precision: int = settings.SEARCH_DISTANCE_PRECISION,
    ) -> ProximityDecision:
        """
        Évalue une entité.

        - demandeur sans position : tout passe, distance inconnue ;
        - entité sans position : elle passe aussi, distance inconnue ;
        - sinon : elle passe ssi distance <= rayon.
        """
        if requester is None or target is None:
            return ProximityDecision(qualifies=True, distance_km=None)

        distance_km = self.distance.distance_km(requester, target, precision)
        return ProximityDecision(
            qualifies=distance_km <= radius_km,
            distance_km=distance_km,
        )

    def filter_entities(
        self,
        requester: Optional[GeoPoint],
        entities: Iterable[RankableEntity],
        radius_km: float,
        precision: int = settings.SEARCH_DISTANCE_PRECISION,
    ) -> List[Tuple[RankableEntity, Optional[float]]]:
        """Garde les entités retenues, dans leur ordre d'origine, avec leur distance."""
        kept = []
        for entity in entities:
            decision = self.evaluate(requester, entity.location, radius_km, precision)
            if decision.qualifies:
                kept.append((entity, decision.distance_km))
        return kept


proximity_filter = ProximityFilter()
