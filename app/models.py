"""Modèles Pydantic pour les entités classées, les requêtes et les réponses."""
import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.config import settings


class GeoPoint(BaseModel):  # pylint: disable=too-few-public-methods
    """Point géographique, immuable pour toute la durée d'une requête."""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_values(cls, lat: Any, lng: Any) -> Optional['GeoPoint']:
        """
        Construit un GeoPoint depuis des valeurs brutes de la base.

        Les colonnes latitude/longitude sont des DECIMAL : on accepte les
        chaînes, Decimal et nombres. Retourne None si une coordonnée est
        absente, non numérique, non finie ou hors limites.
        """
        if lat is None or lng is None or lat == '' or lng == '':
            return None
        try:
            lat_f = float(lat)
            lng_f = float(lng)
        except (ValueError, TypeError):
            return None
        if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
            return None
        if not (-90 <= lat_f <= 90 and -180 <= lng_f <= 180):
            return None
        return cls(latitude=lat_f, longitude=lng_f)


class EntityType(str, Enum):
    """Type d'entité classée."""
    RESTAURANT = "restaurant"
    DISH = "dish"


class RankableEntity(BaseModel):  # pylint: disable=too-few-public-methods
    """Restaurant ou plat exposé au classement, créé par requête."""
    id: str
    name: str
    description: Optional[str] = None
    location: Optional[GeoPoint] = None
    rating_average: float = Field(default=0.0, ge=0.0, le=5.0)
    rating_count: int = Field(default=0, ge=0)
    entity_type: EntityType = EntityType.RESTAURANT
    # Colonnes restantes de la ligne, renvoyées telles quelles au client
    data: Dict[str, Any] = Field(default_factory=dict)


class ScoredResult(RankableEntity):  # pylint: disable=too-few-public-methods
    """Entité classée enrichie de sa distance et de son score. Jamais persistée."""
    distance_km: Optional[float] = None
    relevance_score: float = 0.0


class SearchType(str, Enum):
    """Périmètre de la recherche textuelle."""
    ALL = "all"
    RESTAURANTS = "restaurants"
    DISHES = "dishes"


class SearchFilters(BaseModel):  # pylint: disable=too-few-public-methods
    """Filtres optionnels de POST /search."""
    cuisine_types: List[str] = Field(default_factory=list, alias="cuisineTypes")
    rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)
    # Rayon en km ; à défaut settings.SEARCH_RADIUS_KM
    distance: Optional[float] = Field(default=None, gt=0)

    model_config = ConfigDict(populate_by_name=True)


class SearchRequest(BaseModel):  # pylint: disable=too-few-public-methods
    """Requête de recherche textuelle."""
    query: str
    filters: SearchFilters = Field(default_factory=SearchFilters)
    limit: int = Field(default=settings.DEFAULT_SEARCH_LIMIT, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    search_type: SearchType = Field(default=SearchType.ALL, alias="searchType")
    user_id: Optional[str] = None
    # Position explicite ; sinon l'adresse "home" de l'utilisateur
    location: Optional[GeoPoint] = None

    model_config = ConfigDict(populate_by_name=True)


class SearchResponse(BaseModel):  # pylint: disable=too-few-public-methods
    """Réponse de POST /search."""
    query: str
    results: List[ScoredResult]
    total: int  # nombre de résultats avant pagination
    filters: SearchFilters = Field(default_factory=SearchFilters)
    search_type: SearchType = SearchType.ALL
    user_location: Optional[GeoPoint] = None
    search_radius: Optional[float] = None
    query_time_ms: float = 0.0
    memory_used_mb: Optional[float] = None


class NearbyResponse(BaseModel):  # pylint: disable=too-few-public-methods
    """Réponse de GET /restaurants/nearby."""
    restaurants: List[ScoredResult]
    user_location: GeoPoint
    search_radius: float
    total: int


class AiSearchRequest(BaseModel):  # pylint: disable=too-few-public-methods
    """Recherche assistée par LLM, par texte et/ou image (base64)."""
    query: Optional[str] = None
    image_data: Optional[str] = Field(default=None, alias="imageData")
    user_lat: Optional[float] = Field(default=None, ge=-90, le=90, alias="userLat")
    user_lng: Optional[float] = Field(default=None, ge=-180, le=180, alias="userLng")
    radius: float = Field(default=settings.AI_SEARCH_RADIUS_KM, gt=0)
    user_id: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class MenuItemMatch(BaseModel):  # pylint: disable=too-few-public-methods
    """Plat trouvé par l'ai-search."""
    id: str
    name: str
    description: Optional[str] = None
    price: Optional[str] = None
    image_url: Optional[str] = None
    category_name: Optional[str] = None
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False


class RestaurantGroup(BaseModel):  # pylint: disable=too-few-public-methods
    """Restaurant et ses plats correspondants."""
    restaurant: ScoredResult
    menu_items: List[MenuItemMatch] = Field(default_factory=list)


class AiSearchResponse(BaseModel):  # pylint: disable=too-few-public-methods
    """Réponse de POST /ai-search."""
    query: str
    ai_analysis: str
    search_terms: List[str]
    results: List[RestaurantGroup]
    total: int


class MessageType(str, Enum):
    """Nature d'un message de restaurant."""
    OFFER = "offer"
    PROMOTION = "promotion"
    ANNOUNCEMENT = "announcement"


class MessageRequest(BaseModel):  # pylint: disable=too-few-public-methods
    """Message diffusé par un restaurateur à sa clientèle proche."""
    user_id: str
    title: str = ""
    message: str = ""
    message_type: MessageType = Field(default=MessageType.OFFER, alias="messageType")
    offer_details: Dict[str, Any] = Field(default_factory=dict, alias="offerDetails")
    target_radius_km: float = Field(
        default=settings.MESSAGE_RADIUS_KM, gt=0, alias="targetRadiusKm"
    )
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)


class Recipient(BaseModel):  # pylint: disable=too-few-public-methods
    """Destinataire calculé d'un message."""
    user_id: str
    recipient_type: str  # 'nearby' | 'favorite'
    distance_km: Optional[float] = None


class MessageSummary(BaseModel):  # pylint: disable=too-few-public-methods
    """Statistiques de diffusion."""
    total_recipients: int
    nearby_users: int
    favorite_users: int
    radius_km: float
    restaurant_name: str


class MessageResponse(BaseModel):  # pylint: disable=too-few-public-methods
    """Réponse de POST /restaurant/messages."""
    success: bool = True
    message: str = "Message sent successfully"
    message_id: str
    summary: MessageSummary


class MessageListResponse(BaseModel):  # pylint: disable=too-few-public-methods
    """Réponse de GET /restaurant/messages."""
    success: bool = True
    messages: List[Dict[str, Any]]
    restaurant: Dict[str, Any]
