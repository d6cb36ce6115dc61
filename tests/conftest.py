# tests/conftest.py
import pytest
from unittest.mock import MagicMock, AsyncMock

from app.models import EntityType, GeoPoint, RankableEntity

BANGALORE = GeoPoint(latitude=12.9716, longitude=77.5946)


def make_entity(
    id="1",
    name="Restaurant",
    description=None,
    location=None,
    rating=0.0,
    rating_count=0,
    entity_type=EntityType.RESTAURANT,
):
    """Fabrique une entité classable pour les tests."""
    return RankableEntity(
        id=id,
        name=name,
        description=description,
        location=location,
        rating_average=rating,
        rating_count=rating_count,
        entity_type=entity_type,
    )


def point_north_of(origin, km):
    """Point situé à `km` kilomètres au nord de `origin` (1° de latitude ≈ 111.19 km)."""
    return GeoPoint(latitude=origin.latitude + km / 111.19492664455873, longitude=origin.longitude)


# --- Mocks des clients de bas niveau ---

@pytest.fixture
def mock_db_connector():
    """Fixture pour un mock du connecteur PostgreSQL."""
    db_conn = MagicMock()
    db_conn.execute_query = AsyncMock(return_value=[])
    db_conn.fetch_one = AsyncMock(return_value=None)
    db_conn.execute_many = AsyncMock()
    return db_conn

@pytest.fixture
def mock_repository():
    """Fixture pour un mock du dépôt SQL ; toutes les requêtes renvoient du vide."""
    repo = MagicMock()
    repo.get_home_location = AsyncMock(return_value=None)
    repo.search_restaurants = AsyncMock(return_value=[])
    repo.search_dishes = AsyncMock(return_value=[])
    repo.find_restaurants_in_box = AsyncMock(return_value=[])
    repo.find_menu_items_by_terms = AsyncMock(return_value=[])
    repo.favorite_restaurant_ids = AsyncMock(return_value=[])
    repo.favorite_menu_item_ids = AsyncMock(return_value=[])
    repo.get_restaurant_by_owner = AsyncMock(return_value=None)
    repo.insert_message = AsyncMock(return_value="msg-1")
    repo.customer_origins = AsyncMock(return_value=[])
    repo.favorite_users = AsyncMock(return_value=[])
    repo.insert_recipients = AsyncMock()
    repo.insert_notifications = AsyncMock()
    repo.list_messages = AsyncMock(return_value=[])
    return repo

@pytest.fixture
def mock_cache_manager():
    """Fixture pour un mock du gestionnaire de cache Redis."""
    cache = MagicMock()
    cache.get = AsyncMock(return_value=None)  # Par défaut, le cache est toujours vide (miss)
    cache.set = AsyncMock()
    return cache

# --- Services de l'application ---

@pytest.fixture
def favorite_pastille_service(mock_repository):
    from app.search.favorite_pastille import FavoritePastilleService

    return FavoritePastilleService(repository=mock_repository)

@pytest.fixture
def search_service_mock(mock_repository, favorite_pastille_service, mock_cache_manager):
    """
    Fixture qui fournit un vrai SearchService branché sur un dépôt et un
    cache mockés.
    """
    from app.search.search_service import SearchService

    return SearchService(
        repository=mock_repository,
        favorite_pastille_service=favorite_pastille_service,
        cache=mock_cache_manager,
    )
