"""Main module for the FastAPI application."""
import json
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from redis.exceptions import ConnectionError as RedisConnectionError

from .cache import cache_manager
from .config import settings
from .db.postgres_connector import PostgresConnector
from .db.repository import SearchRepository
from .exceptions import (
    InvalidLocationError,
    InvalidRequestError,
    QueryInterpretationError,
    RestaurantNotFoundError,
)
from .logger import logger
from .messaging.broadcast import MessageBroadcastService
from .models import (
    AiSearchRequest,
    AiSearchResponse,
    GeoPoint,
    MessageListResponse,
    MessageRequest,
    MessageResponse,
    NearbyResponse,
    SearchRequest,
    SearchResponse,
)
from .search.ai_search import AiSearchService
from .search.favorite_pastille import FavoritePastilleService
from .search.nearby_service import NearbyService
from .search.search_service import SearchService


# --- Initialisation des services ---

db_connector: PostgresConnector = PostgresConnector(settings.DATABASE_URL)
repository: SearchRepository = SearchRepository(db_connector)

favorite_pastille_service = FavoritePastilleService(repository)
search_service = SearchService(
    repository=repository,
    favorite_pastille_service=favorite_pastille_service,
    cache=cache_manager,
)
nearby_service = NearbyService(repository)
ai_search_service = AiSearchService(repository)
message_service = MessageBroadcastService(repository)

# Alias `service` pour les tests qui patchent `main.service`
service = search_service


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Handle FastAPI startup and shutdown events."""
    logger.info("Starting up Aharamm search API...")

    try:
        await db_connector.connect()
        logger.info("PostgreSQL connection pool established successfully.")
    except (ConnectionError, OSError) as e:
        logger.error("Failed to connect to PostgreSQL: {error}", error=e)

    try:
        await cache_manager.ping()
        logger.info("Redis cache connected successfully.")
    except RedisConnectionError as e:
        logger.error("Failed to connect to Redis: {error}", error=e)

    yield

    logger.info("Shutting down Aharamm search API...")
    await db_connector.close()
    logger.info("PostgreSQL connection pool closed.")
    await cache_manager.close()
    logger.info("Redis connection closed.")


app = FastAPI(
    title="Aharamm AI - Search Service",
    lifespan=lifespan
)


# Dépendances (remplaçables dans les tests via les alias du module)
def get_service() -> SearchService:
    return service


def get_nearby_service() -> NearbyService:
    return nearby_service


def get_ai_search_service() -> AiSearchService:
    return ai_search_service


def get_message_service() -> MessageBroadcastService:
    return message_service


def _to_http_error(e: Exception, public_message: str) -> HTTPException:
    """Traduit les exceptions métier en erreurs HTTP."""
    if isinstance(e, (InvalidRequestError, InvalidLocationError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": str(e)})
    if isinstance(e, RestaurantNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"error": str(e)})
    if isinstance(e, QueryInterpretationError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail={"error": str(e)})
    logger.exception(public_message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail={"error": public_message}
    )


@app.post("/search", response_model=SearchResponse)
async def search(req: SearchRequest, svc: SearchService = Depends(get_service)):
    """POST /search : recherche textuelle classée de restaurants et de plats."""
    try:
        pretty_request_body = json.dumps(req.model_dump(mode="json"), indent=2, ensure_ascii=False)
        logger.info("Received request:\n{request_body}", request_body=pretty_request_body)
        return await svc.search(req)
    except Exception as e:
        raise _to_http_error(e, "Search failed") from e


@app.get("/restaurants/nearby", response_model=NearbyResponse)
async def restaurants_nearby(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0),
    limit: int = Query(settings.NEARBY_DEFAULT_LIMIT, ge=1, le=100),
    svc: NearbyService = Depends(get_nearby_service),
):
    """GET /restaurants/nearby : restaurants autour d'un point, du plus proche au plus loin."""
    try:
        return await svc.find_nearby(
            GeoPoint(latitude=lat, longitude=lng),
            radius_km=radius,
            limit=limit,
        )
    except Exception as e:
        raise _to_http_error(e, "Failed to search nearby restaurants") from e


@app.post("/ai-search", response_model=AiSearchResponse)
async def ai_search(req: AiSearchRequest, svc: AiSearchService = Depends(get_ai_search_service)):
    """POST /ai-search : recherche par texte ou photo interprétée par LLM."""
    try:
        return await svc.search(req)
    except Exception as e:
        raise _to_http_error(e, "AI search failed") from e


@app.post("/restaurant/messages", response_model=MessageResponse)
async def send_restaurant_message(
    req: MessageRequest, svc: MessageBroadcastService = Depends(get_message_service)
):
    """POST /restaurant/messages : diffusion aux clients proches et aux fans."""
    try:
        return await svc.send(req)
    except Exception as e:
        raise _to_http_error(e, "Failed to send message") from e


@app.get("/restaurant/messages", response_model=MessageListResponse)
async def list_restaurant_messages(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    svc: MessageBroadcastService = Depends(get_message_service),
):
    """GET /restaurant/messages : messages envoyés et leurs statistiques."""
    try:
        return await svc.list_messages(user_id, limit=limit, offset=offset)
    except Exception as e:
        raise _to_http_error(e, "Failed to fetch messages") from e


@app.get("/")
def root():
    """Root endpoint to check API status."""
    return {"status": "ok", "message": "Aharamm search API is running"}


@app.get("/health", status_code=status.HTTP_200_OK, tags=["Monitoring"])
async def health_check():
    """
    Health check endpoint.

    Checks connectivity to the database and Redis.
    Returns 200 OK if all services are reachable, otherwise 503 Service Unavailable.
    """
    services_status = {"database": "ok", "redis": "ok"}
    try:
        await cache_manager.ping()
    except RedisConnectionError:
        services_status["redis"] = "error"
        logger.error("Health check failed: Redis connection error.")

    try:
        await db_connector.execute_query("SELECT 1")
    except (ConnectionError, OSError):
        services_status["database"] = "error"
        logger.error("Health check failed: Database connection error.")

    if "error" in services_status.values():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=services_status)

    return services_status
