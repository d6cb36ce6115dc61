"""Évaluation et scoring de pertinence des entités."""
import math
from typing import Any, Dict, Optional

from app.config import settings
from app.models import EntityType, RankableEntity


def _finite_or_zero(value: Any) -> float:
    """Convertit en float fini ; toute valeur absente ou invalide vaut 0."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (ValueError, TypeError):
        return 0.0
    return number if math.isfinite(number) else 0.0


class RelevanceScorer:
    """
    Scoreur de pertinence additif.

    Combine la correspondance textuelle, la note et une pénalité de distance
    en un score triable. Fonction pure : mêmes entrées, même score.
    """

    def __init__(
        self,
        rating_weights: Optional[Dict[str, float]] = None,
        distance_penalty: float = settings.DISTANCE_PENALTY_PER_KM,
    ):
        self.rating_weights = rating_weights or settings.RATING_WEIGHTS
        self.distance_penalty = distance_penalty

    def text_score(self, name: str, description: Optional[str], query: Optional[str]) -> float:
        """Points de correspondance textuelle (nom exact, nom contenant, description)."""
        q = (query or "").strip().lower()
        if not q:
            return 0.0

        name_l = (name or "").lower()
        description_l = (description or "").lower()

        score = 0.0
        if name_l == q:
            score += settings.SCORE_EXACT_NAME
        elif q in name_l:
            score += settings.SCORE_NAME_CONTAINS

        if q in description_l:
            score += settings.SCORE_DESCRIPTION_CONTAINS
        return score

    def rating_score(self, entity: RankableEntity) -> float:
        """Contribution de la note, pondérée selon le type d'entité."""
        entity_type = EntityType(entity.entity_type).value
        weight = self.rating_weights.get(entity_type, 0.0)
        return _finite_or_zero(entity.rating_average) * weight

    def distance_score(self, distance_km: Optional[float]) -> float:
        """Pénalité de distance (négative), sans plancher."""
        if distance_km is None:
            return 0.0
        return -_finite_or_zero(distance_km) * self.distance_penalty

    def score(
        self,
        entity: RankableEntity,
        query: Optional[str],
        distance_km: Optional[float] = None,
    ) -> float:
        """
        Calcule le score total d'une entité.

        Args:
            entity: Restaurant ou plat
            query: Texte recherché (None ou vide : aucun point textuel)
            distance_km: Distance au demandeur, None si inconnue

        Returns:
            Score (peut être négatif, jamais NaN)
        """
        return (
            self.text_score(entity.name, entity.description, query)
            + self.rating_score(entity)
            + self.distance_score(distance_km)
        )


relevance_scorer = RelevanceScorer()
