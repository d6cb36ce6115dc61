"""Recherche assistée par LLM (POST /ai-search) : plats regroupés par restaurant."""
import time
from typing import Any, Dict, List, Optional

from app.config import settings
from app.db.repository import SearchRepository, json_list, parse_rating
from app.exceptions import InvalidRequestError
from app.llm.query_interpreter import QueryInterpreter, query_interpreter
from app.logger import logger
from app.models import (
    AiSearchRequest,
    AiSearchResponse,
    EntityType,
    GeoPoint,
    MenuItemMatch,
    RestaurantGroup,
    ScoredResult,
)
from app.scoring.proximity import ProximityFilter
from app.scoring.ranking import Ranker


def unique_terms(terms: List[str], min_length: int = settings.MIN_TERM_LENGTH) -> List[str]:
    """Dédoublonne en gardant l'ordre ; écarte les termes trop courts."""
    seen: Dict[str, bool] = {}
    for term in terms:
        if term and len(term.strip()) >= min_length and term not in seen:
            seen[term] = True
    return list(seen.keys())


class AiSearchService:
    """Service d'ai-search : termes LLM, plats correspondants, regroupement et tri."""

    def __init__(
        self,
        repository: SearchRepository,
        interpreter: Optional[QueryInterpreter] = None,
    ):
        self.repository = repository
        self.interpreter = interpreter or query_interpreter
        self.proximity = ProximityFilter()
        self.ranker = Ranker()

    async def extract_terms(self, request: AiSearchRequest) -> Dict[str, Any]:
        """Termes issus de l'image puis du texte, avec repli sur la découpe du texte."""
        terms: List[str] = []
        analysis = ""

        if request.image_data:
            image = await self.interpreter.interpret_image(request.image_data)
            terms.extend(image.search_terms)
            analysis = image.analysis

        if request.query:
            text = await self.interpreter.interpret_text(request.query)
            terms.extend(text.search_terms)
            analysis = text.analysis or analysis

        terms = unique_terms(terms)
        if not terms and request.query:
            terms = unique_terms(request.query.lower().split(' '))

        return {'terms': terms, 'analysis': analysis}

    def _menu_item_from_row(self, row: Dict[str, Any]) -> MenuItemMatch:
        images = json_list(row.get('item_images'))
        tags = json_list(row.get('item_dietary_tags'))
        return MenuItemMatch(
            id=str(row['item_id']),
            name=row.get('item_name') or '',
            description=row.get('item_description'),
            price=row.get('item_price'),
            image_url=images[0] if images else None,
            category_name=row.get('category_name'),
            is_vegetarian='vegetarian' in tags,
            is_vegan='vegan' in tags,
            is_gluten_free='gluten-free' in tags,
        )

    def group_by_restaurant(
        self,
        rows: List[Dict[str, Any]],
        requester: Optional[GeoPoint],
        radius_km: float,
    ) -> List[RestaurantGroup]:
        """Regroupe les plats par restaurant en écartant ceux hors du rayon."""
        groups: Dict[str, RestaurantGroup] = {}

        for row in rows:
            restaurant_id = row.get('restaurant_id')
            if not restaurant_id:
                continue

            location = GeoPoint.from_values(row.get('latitude'), row.get('longitude'))
            decision = self.proximity.evaluate(requester, location, radius_km)
            if not decision.qualifies:
                continue

            if restaurant_id not in groups:
                groups[restaurant_id] = RestaurantGroup(
                    restaurant=ScoredResult(
                        id=str(restaurant_id),
                        name=row.get('restaurant_name') or '',
                        description=row.get('restaurant_description'),
                        location=location,
                        rating_average=parse_rating(row.get('average_rating')),
                        rating_count=max(0, int(row.get('review_count') or 0)),
                        entity_type=EntityType.RESTAURANT,
                        distance_km=decision.distance_km,
                        data={
                            'cuisine_types': json_list(row.get('cuisine_types')),
                            'profile_image': row.get('profile_image'),
                            'address': row.get('address'),
                            'city': row.get('city'),
                            'state': row.get('state'),
                        },
                    ),
                )
            groups[restaurant_id].menu_items.append(self._menu_item_from_row(row))

        return list(groups.values())

    async def search(self, request: AiSearchRequest) -> AiSearchResponse:
        """
        Exécute une ai-search.

        Raises:
            InvalidRequestError: ni texte ni image, ou aucun terme exploitable.
            QueryInterpretationError: l'analyse de l'image a échoué.
        """
        if not request.query and not request.image_data:
            raise InvalidRequestError("Either text query or image is required")

        start_time = time.time()
        extracted = await self.extract_terms(request)
        terms = extracted['terms']
        if not terms:
            raise InvalidRequestError("Please provide a search query")

        requester = None
        if request.user_lat is not None and request.user_lng is not None:
            requester = GeoPoint(latitude=request.user_lat, longitude=request.user_lng)

        rows = await self.repository.find_menu_items_by_terms(
            terms, settings.AI_SEARCH_CANDIDATE_LIMIT
        )
        groups = self.ranker.rank_restaurant_groups(
            self.group_by_restaurant(rows, requester, request.radius)
        )

        logger.info(
            "AI search (image: {has_image}, texte: {has_text}) termes={terms} : "
            "{count} restaurants en {duration:.4f}s",
            has_image=bool(request.image_data), has_text=bool(request.query),
            terms=terms, count=len(groups), duration=time.time() - start_time,
        )

        return AiSearchResponse(
            query=request.query or 'Image search',
            ai_analysis=extracted['analysis'],
            search_terms=terms,
            results=groups[:settings.AI_SEARCH_RESULT_LIMIT],
            total=len(groups),
        )
