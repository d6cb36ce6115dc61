"""Module de service pour la pastille favori des résultats de recherche."""

import asyncio
from typing import Any, Dict, List, Optional, Set

from app.db.repository import SearchRepository
from app.exceptions import InvalidRequestError
from app.logger import logger
from app.models import EntityType, ScoredResult


class FavoritePastilleService:  # pylint: disable=too-few-public-methods
    """
    Service d'enrichissement des résultats.

    Ajoute la pastille `is_favorite` aux restaurants et aux plats.
    """

    def __init__(self, repository: SearchRepository):
        self.repository = repository

    def _validate_user_id(self, user_id: Any) -> str:
        """
        Valide l'identifiant utilisateur (identifiant texte non vide).

        Raises:
            InvalidRequestError: Si l'ID n'est pas valide
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidRequestError(f"Invalid user_id: {user_id!r}")
        return user_id.strip()

    def _split_ids(self, results: List[ScoredResult]) -> Dict[str, List[str]]:
        """Sépare les IDs de restaurants et de plats, sans doublons."""
        ids: Dict[str, Dict[str, bool]] = {'restaurant': {}, 'dish': {}}
        for result in results:
            ids[EntityType(result.entity_type).value][result.id] = True
        return {key: list(values.keys()) for key, values in ids.items()}

    async def append_favorite_pastille(
        self,
        results: List[ScoredResult],
        user_id: Optional[str],
    ) -> List[ScoredResult]:
        """
        Enrichit les résultats avec la pastille favori.

        Args:
            results: Résultats classés
            user_id: ID utilisateur optionnel

        Returns:
            Les mêmes résultats, `data['is_favorite']` renseigné
        """
        if not results:
            return results

        if not user_id:
            for result in results:
                result.data['is_favorite'] = False
            return results

        user_id = self._validate_user_id(user_id)
        ids = self._split_ids(results)

        # Requêtes en parallèle
        tasks = {}
        if ids['restaurant']:
            tasks['restaurant'] = self.repository.favorite_restaurant_ids(
                user_id, ids['restaurant']
            )
        if ids['dish']:
            tasks['dish'] = self.repository.favorite_menu_item_ids(
                user_id, ids['dish']
            )

        task_keys = list(tasks.keys())
        results_list = await asyncio.gather(*tasks.values())
        rows = dict(zip(task_keys, results_list))

        favorites: Dict[str, Set[str]] = {
            key: {str(row['id']) for row in rows.get(key, [])}
            for key in ('restaurant', 'dish')
        }
        logger.debug(
            "FavoritePastilleService - user_id: {user_id} | "
            "restaurants favoris: {restaurants} | plats favoris: {dishes}",
            user_id=user_id,
            restaurants=len(favorites['restaurant']),
            dishes=len(favorites['dish']),
        )

        for result in results:
            kind = EntityType(result.entity_type).value
            result.data['is_favorite'] = result.id in favorites[kind]
        return results
