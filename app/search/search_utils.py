"""
SearchUtils - pipeline de classement.

Distance, filtre de proximité, score de pertinence puis tri, appliqués à un
instantané de candidats déjà chargé pour la requête.
"""

from typing import Any, Dict, Iterable, List, Optional

from app.config import settings
from app.models import GeoPoint, RankableEntity, ScoredResult
from app.scoring.evaluator import RelevanceScorer
from app.scoring.proximity import ProximityFilter
from app.scoring.ranking import Ranker


class SearchUtils:
    """Utilitaire de recherche : proximité + pertinence + tri."""

    def __init__(
            self,
            scorer: Optional[RelevanceScorer] = None,
            proximity: Optional[ProximityFilter] = None):
        self.scorer = scorer or RelevanceScorer()
        self.proximity = proximity or ProximityFilter()
        self.ranker = Ranker()

    def score_candidates(
            self,
            candidates: Iterable[RankableEntity],
            query: Optional[str],
            requester: Optional[GeoPoint],
            radius_km: float,
            precision: int = settings.SEARCH_DISTANCE_PRECISION) -> List[ScoredResult]:
        """
        Filtre par rayon et score les candidats, sans les trier.

        Args:
            candidates: Entités chargées pour la requête
            query: Texte recherché, None pour un score sans texte
            requester: Position du demandeur (optionnelle)
            radius_km: Rayon de recherche
            precision: Décimales de la distance

        Returns:
            Résultats retenus, dans l'ordre d'entrée
        """
        kept = self.proximity.filter_entities(
            requester, candidates, radius_km, precision
        )
        scored = []
        for entity, distance_km in kept:
            scored.append(ScoredResult(
                **entity.model_dump(exclude={'distance_km', 'relevance_score'}),
                distance_km=distance_km,
                relevance_score=self.scorer.score(entity, query, distance_km),
            ))
        return scored

    def process_results(
        self,
        candidates: Iterable[RankableEntity],
        query: Optional[str],
        requester: Optional[GeoPoint],
        radius_km: float,
    ) -> Dict[str, Any]:
        """
        Traite les candidats : proximité, score et tri par pertinence.
        La pagination est gérée par l'appelant.

        Returns:
            Dict avec results (triés), total et total_before_filter
        """
        candidates = list(candidates)

        scored = self.score_candidates(candidates, query, requester, radius_km)
        ranked = self.ranker.rank(scored)

        return {
            'results': ranked,
            'total': len(ranked),
            'total_before_filter': len(candidates),
        }
