# tests/test_repository.py
from decimal import Decimal

import pytest

from app.db.repository import (
    SearchRepository,
    dish_from_row,
    json_list,
    parse_rating,
    restaurant_from_row,
)
from app.models import EntityType, GeoPoint
from .conftest import BANGALORE


class TestGeoPointFromValues:
    """Lecture des coordonnées en base."""

    def test_decimal_and_strings(self):
        assert GeoPoint.from_values(Decimal("12.97"), "77.59") == GeoPoint(latitude=12.97, longitude=77.59)

    @pytest.mark.parametrize("lat,lng", [
        (None, 77.5), (12.9, None), ("", "77.5"), ("abc", 77.5),
        (float("nan"), 77.5), (12.9, float("inf")), (91, 0), (0, -181),
    ])
    def test_invalid_values(self, lat, lng):
        assert GeoPoint.from_values(lat, lng) is None


class TestRowConversion:
    """Conversion des lignes SQL."""

    def test_parse_rating(self):
        assert parse_rating(None) == 0.0
        assert parse_rating("4.5") == 4.5
        assert parse_rating(Decimal("7")) == 5.0
        assert parse_rating(-1) == 0.0
        assert parse_rating(float("nan")) == 0.0

    def test_json_list(self):
        assert json_list('["a", "b"]') == ["a", "b"]
        assert json_list(["a"]) == ["a"]
        assert json_list("{bad") == []
        assert json_list('{"a": 1}') == []
        assert json_list(None) == []

    def test_restaurant_from_row(self):
        entity = restaurant_from_row({
            'id': 12, 'name': "Dosa Corner", 'description': "South Indian",
            'latitude': "12.9716", 'longitude': "77.5946",
            'average_rating': Decimal("4.3"), 'review_count': 120,
            'cuisine_types': '["indian"]', 'city': "Bengaluru",
        })
        assert entity.id == "12"
        assert entity.entity_type == EntityType.RESTAURANT
        assert entity.location == BANGALORE
        assert entity.rating_average == 4.3
        assert entity.rating_count == 120
        assert entity.data == {'cuisine_types': ["indian"], 'city': "Bengaluru"}

    def test_operating_hours_decoded(self):
        entity = restaurant_from_row({
            'id': "r", 'name': "Dosa Corner",
            'operating_hours': '{"monday": {"open": "09:00", "close": "22:00"}}',
        })
        assert entity.data['operating_hours'] == {"monday": {"open": "09:00", "close": "22:00"}}
        broken = restaurant_from_row({'id': "r", 'name': "x", 'operating_hours': "{bad"})
        assert broken.data['operating_hours'] is None

    def test_restaurant_without_coordinates(self):
        entity = restaurant_from_row({'id': "r", 'name': "Ghost", 'latitude': None, 'longitude': None})
        assert entity.location is None
        assert entity.rating_average == 0.0

    def test_dish_from_row(self):
        entity = dish_from_row({
            'id': "d1", 'name': "Paneer Tikka", 'description': None,
            'restaurant_rating': "4.0", 'images': '["https://img/p.jpg"]',
            'dietary_tags': '["vegetarian", "gluten-free"]', 'restaurant_id': "r1",
        })
        assert entity.entity_type == EntityType.DISH
        assert entity.location is None
        assert entity.rating_average == 4.0
        assert entity.data['image_url'] == "https://img/p.jpg"
        assert entity.data['is_vegetarian'] and entity.data['is_gluten_free']
        assert not entity.data['is_vegan']
        assert 'restaurant_rating' not in entity.data


@pytest.mark.asyncio
class TestSearchRepository:
    """Construction des requêtes SQL."""

    async def test_search_restaurants_with_bounding_box(self, mock_db_connector):
        repo = SearchRepository(mock_db_connector)
        await repo.search_restaurants(
            "  Pizza ", limit=50, cuisine_types=["italian"], min_rating=4,
            near=BANGALORE, radius_km=10,
        )
        sql, *args = mock_db_connector.execute_query.call_args.args
        assert args[0] == "%pizza%"
        assert args[1] == ["italian"]
        assert args[2] == 4.0
        min_lat, max_lat, min_lng, max_lng = args[3:7]
        assert min_lat < BANGALORE.latitude < max_lat
        assert min_lng < BANGALORE.longitude < max_lng
        assert args[-1] == 50
        assert "r.latitude IS NULL" in sql
        assert "LIMIT $8" in sql

    async def test_search_restaurants_without_location(self, mock_db_connector):
        repo = SearchRepository(mock_db_connector)
        await repo.search_restaurants("pizza", limit=20)
        sql, *args = mock_db_connector.execute_query.call_args.args
        assert args == ["%pizza%", 20]
        assert "BETWEEN" not in sql

    async def test_box_query_ordered_by_distance_before_limit(self, mock_db_connector):
        repo = SearchRepository(mock_db_connector)
        await repo.find_restaurants_in_box(BANGALORE, 25, 500)
        sql, *args = mock_db_connector.execute_query.call_args.args
        assert "ORDER BY" in sql
        assert sql.index("ORDER BY") < sql.index("LIMIT")
        assert args[4:] == [BANGALORE.latitude, BANGALORE.longitude, 500]
        assert "LIMIT $7" in sql

    async def test_home_location(self, mock_db_connector):
        mock_db_connector.fetch_one.return_value = {'latitude': Decimal("12.9716"), 'longitude': Decimal("77.5946")}
        repo = SearchRepository(mock_db_connector)
        assert await repo.get_home_location("u1") == BANGALORE

    async def test_home_location_missing(self, mock_db_connector):
        repo = SearchRepository(mock_db_connector)
        assert await repo.get_home_location("u1") is None

    async def test_insert_message_rounds_radius(self, mock_db_connector):
        mock_db_connector.fetch_one.return_value = {'id': "m1"}
        repo = SearchRepository(mock_db_connector)
        message_id = await repo.insert_message("r1", "owner", {
            'title': "t", 'message': "m", 'message_type': "offer",
            'offer_details': {'discount': 20}, 'target_radius_km': 7.6,
        })
        assert message_id == "m1"
        args = mock_db_connector.fetch_one.call_args.args
        assert args[6] == '{"discount": 20}'
        assert args[7] == 8
