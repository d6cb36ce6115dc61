"""Requêtes SQL de l'application et conversion des lignes en entités classables."""
import json
from typing import Any, Dict, List, Optional, Sequence

from app.db.postgres_connector import PostgresConnector
from app.models import EntityType, GeoPoint, RankableEntity
from app.scoring.distance import geo_distance

RESTAURANT_COLUMNS = """
    r.id::text AS id, r.name, r.description, r.cuisine_types, r.category,
    r.tagline, r.profile_image, r.cover_images, r.average_rating,
    r.review_count, r.address, r.city, r.state, r.zip_code,
    r.latitude, r.longitude, r.phone, r.website, r.operating_hours,
    r.is_active, r.created_at
"""

# Colonnes déjà portées par RankableEntity, exclues de `data`
_ENTITY_KEYS = {'id', 'name', 'description', 'latitude', 'longitude',
                'average_rating', 'review_count'}


def parse_rating(value: Any) -> float:
    """Note en float bornée à [0, 5] ; 0 si absente ou illisible."""
    if value is None:
        return 0.0
    try:
        rating = float(value)
    except (ValueError, TypeError):
        return 0.0
    if rating != rating:  # NaN
        return 0.0
    return max(0.0, min(5.0, rating))


def json_list(value: Any) -> List[Any]:
    """Les colonnes JSON arrivent en texte avec asyncpg sans codec."""
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    return list(value) if isinstance(value, (list, tuple)) else []


def json_object(value: Any) -> Optional[Dict[str, Any]]:
    """Colonne JSON objet (ex. horaires) ; None si absente ou illisible."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value if isinstance(value, dict) else None


def restaurant_from_row(row: Dict[str, Any]) -> RankableEntity:
    """Convertit une ligne `restaurants` en entité classable."""
    data = {k: v for k, v in row.items() if k not in _ENTITY_KEYS}
    for key in ('cuisine_types', 'cover_images'):
        if key in data:
            data[key] = json_list(data[key])
    if 'operating_hours' in data:
        data['operating_hours'] = json_object(data['operating_hours'])
    return RankableEntity(
        id=str(row['id']),
        name=row.get('name') or '',
        description=row.get('description'),
        location=GeoPoint.from_values(row.get('latitude'), row.get('longitude')),
        rating_average=parse_rating(row.get('average_rating')),
        rating_count=max(0, int(row.get('review_count') or 0)),
        entity_type=EntityType.RESTAURANT,
        data=data,
    )


def dish_from_row(row: Dict[str, Any]) -> RankableEntity:
    """
    Convertit une ligne `menu_items` jointe à son restaurant.

    La note d'un plat est celle de son restaurant ; un plat ne porte pas
    de coordonnées dans la recherche textuelle.
    """
    data = {k: v for k, v in row.items()
            if k not in _ENTITY_KEYS and k != 'restaurant_rating'}
    images = json_list(row.get('images'))
    tags = json_list(row.get('dietary_tags'))
    data.update({
        'images': images,
        'dietary_tags': tags,
        'image_url': images[0] if images else None,
        'is_vegetarian': 'vegetarian' in tags,
        'is_vegan': 'vegan' in tags,
        'is_gluten_free': 'gluten-free' in tags,
    })
    return RankableEntity(
        id=str(row['id']),
        name=row.get('name') or '',
        description=row.get('description'),
        location=None,
        rating_average=parse_rating(row.get('restaurant_rating')),
        rating_count=0,
        entity_type=EntityType.DISH,
        data=data,
    )


class SearchRepository:
    """Accès aux tables restaurants, plats, localisations, favoris et messages."""

    def __init__(self, db_connector: PostgresConnector):
        self.db = db_connector

    # -----------------------------------------------------------------
    # Recherche
    # -----------------------------------------------------------------
    async def get_home_location(self, user_id: str) -> Optional[GeoPoint]:
        """Position "home" d'un utilisateur, si elle a des coordonnées."""
        row = await self.db.fetch_one(
            """SELECT latitude, longitude FROM user_locations
            WHERE user_id = $1 AND type = 'home' LIMIT 1""",
            user_id,
        )
        if not row:
            return None
        return GeoPoint.from_values(row.get('latitude'), row.get('longitude'))

    async def search_restaurants(
        self,
        query: str,
        limit: int,
        cuisine_types: Sequence[str] = (),
        min_rating: Optional[float] = None,
        near: Optional[GeoPoint] = None,
        radius_km: Optional[float] = None,
    ) -> List[RankableEntity]:
        """
        Restaurants actifs dont le nom, la description, le slogan ou les
        cuisines contiennent le texte recherché.

        Avec `near`, seule l'enveloppe du rayon est appliquée en SQL ; les
        restaurants sans coordonnées restent candidats.
        """
        args: List[Any] = [f"%{query.strip().lower()}%"]
        conditions = [
            "r.is_active = true",
            """(r.name ILIKE $1 OR r.description ILIKE $1 OR r.tagline ILIKE $1
                OR r.cuisine_types::text ILIKE $1)""",
        ]

        if cuisine_types:
            args.append(list(cuisine_types))
            conditions.append(f"r.cuisine_types::jsonb ?| ${len(args)}::text[]")

        if min_rating:
            args.append(float(min_rating))
            conditions.append(f"r.average_rating >= ${len(args)}")

        if near is not None and radius_km is not None:
            min_lat, max_lat, min_lng, max_lng = geo_distance.bounding_box(near, radius_km)
            args.extend([min_lat, max_lat, min_lng, max_lng])
            n = len(args)
            conditions.append(
                f"""(r.latitude IS NULL OR r.longitude IS NULL OR (
                    r.latitude::float BETWEEN ${n - 3} AND ${n - 2}
                    AND r.longitude::float BETWEEN ${n - 1} AND ${n}))"""
            )

        args.append(limit)
        sql = f"""SELECT {RESTAURANT_COLUMNS}
            FROM restaurants r
            WHERE {' AND '.join(conditions)}
            ORDER BY r.average_rating DESC NULLS LAST, r.name ASC
            LIMIT ${len(args)}"""  # nosec B608
        rows = await self.db.execute_query(sql, *args)
        return [restaurant_from_row(row) for row in rows]

    async def search_dishes(self, query: str, limit: int) -> List[RankableEntity]:
        """Plats actifs et disponibles de restaurants actifs correspondant au texte."""
        rows = await self.db.execute_query(
            """SELECT mi.id::text AS id, mi.name, mi.description, mi.price::text AS price,
                mi.images, mi.dietary_tags, mi.spice_level, mi.preparation_time,
                mi.availability, r.id::text AS restaurant_id,
                r.name AS restaurant_name, r.profile_image AS restaurant_image,
                r.average_rating AS restaurant_rating, r.address AS restaurant_address,
                r.city AS restaurant_city, r.state AS restaurant_state,
                mc.name AS category_name
            FROM menu_items mi
            LEFT JOIN menu_categories mc ON mi.category_id = mc.id
            LEFT JOIN menus m ON mc.menu_id = m.id
            LEFT JOIN restaurants r ON m.restaurant_id = r.id
            WHERE r.is_active = true AND mi.is_active = true
                AND mi.availability = 'available'
                AND (mi.name ILIKE $1 OR mi.description ILIKE $1
                     OR mi.dietary_tags::text ILIKE $1)
            LIMIT $2""",
            f"%{query.strip().lower()}%",
            limit,
        )
        return [dish_from_row(row) for row in rows]

    async def find_restaurants_in_box(
        self, center: GeoPoint, radius_km: float, limit: int
    ) -> List[RankableEntity]:
        """
        Restaurants actifs géolocalisés dans l'enveloppe du rayon.

        Triés par distance équirectangulaire approchée avant le LIMIT : les
        plus proches sont toujours dans les `limit` candidats.
        """
        min_lat, max_lat, min_lng, max_lng = geo_distance.bounding_box(center, radius_km)
        rows = await self.db.execute_query(
            f"""SELECT {RESTAURANT_COLUMNS}
            FROM restaurants r
            WHERE r.is_active = true
                AND r.latitude IS NOT NULL AND r.longitude IS NOT NULL
                AND r.latitude::float BETWEEN $1 AND $2
                AND r.longitude::float BETWEEN $3 AND $4
            ORDER BY power(r.latitude::float - $5, 2)
                + power((r.longitude::float - $6) * cos(radians($5)), 2) ASC
            LIMIT $7""",  # nosec B608
            min_lat, max_lat, min_lng, max_lng,
            center.latitude, center.longitude, limit,
        )
        return [restaurant_from_row(row) for row in rows]

    async def find_menu_items_by_terms(
        self, terms: Sequence[str], limit: int
    ) -> List[Dict[str, Any]]:
        """Plats (avec leur restaurant) correspondant à au moins un terme."""
        patterns = [f"%{term}%" for term in terms]
        return await self.db.execute_query(
            """SELECT mi.id::text AS item_id, mi.name AS item_name,
                mi.description AS item_description, mi.price::text AS item_price,
                mi.images AS item_images, mi.dietary_tags AS item_dietary_tags,
                mc.name AS category_name, r.id::text AS restaurant_id,
                r.name AS restaurant_name, r.description AS restaurant_description,
                r.cuisine_types, r.profile_image, r.average_rating, r.review_count,
                r.address, r.city, r.state, r.latitude, r.longitude
            FROM menu_items mi
            LEFT JOIN menu_categories mc ON mi.category_id = mc.id
            LEFT JOIN menus m ON mc.menu_id = m.id
            LEFT JOIN restaurants r ON m.restaurant_id = r.id
            WHERE r.is_active = true AND mi.is_active = true
                AND mi.availability = 'available'
                AND (mi.name ILIKE ANY($1::text[])
                     OR mi.description ILIKE ANY($1::text[])
                     OR mi.dietary_tags::text ILIKE ANY($1::text[])
                     OR r.name ILIKE ANY($1::text[])
                     OR r.description ILIKE ANY($1::text[])
                     OR r.cuisine_types::text ILIKE ANY($1::text[]))
            LIMIT $2""",
            patterns,
            limit,
        )

    # -----------------------------------------------------------------
    # Favoris
    # -----------------------------------------------------------------
    async def favorite_restaurant_ids(self, user_id: str, ids: List[str]) -> List[Dict[str, Any]]:
        return await self.db.execute_query(
            """SELECT restaurant_id::text AS id FROM favorites
            WHERE user_id = $1 AND type = 'restaurant'
                AND restaurant_id::text = ANY($2::text[])""",
            user_id, ids,
        )

    async def favorite_menu_item_ids(self, user_id: str, ids: List[str]) -> List[Dict[str, Any]]:
        return await self.db.execute_query(
            """SELECT menu_item_id::text AS id FROM favorites
            WHERE user_id = $1 AND type = 'menu_item'
                AND menu_item_id::text = ANY($2::text[])""",
            user_id, ids,
        )

    # -----------------------------------------------------------------
    # Messagerie
    # -----------------------------------------------------------------
    async def get_restaurant_by_owner(self, owner_id: str) -> Optional[Dict[str, Any]]:
        return await self.db.fetch_one(
            """SELECT id::text AS id, name, latitude, longitude
            FROM restaurants WHERE owner_id = $1 LIMIT 1""",
            owner_id,
        )

    async def insert_message(
        self,
        restaurant_id: str,
        sender_id: str,
        values: Dict[str, Any],
    ) -> str:
        """Crée le message et retourne son identifiant."""
        row = await self.db.fetch_one(
            """INSERT INTO restaurant_messages
                (restaurant_id, sender_id, title, message, message_type,
                 offer_details, target_radius_km, expires_at)
            VALUES ($1::uuid, $2, $3, $4, $5, $6::json, $7, $8)
            RETURNING id::text AS id""",
            restaurant_id,
            sender_id,
            values['title'],
            values['message'],
            values['message_type'],
            json.dumps(values.get('offer_details') or {}),
            int(round(values['target_radius_km'])),
            values.get('expires_at'),
        )
        return row['id']

    async def customer_origins(self, exclude_user_id: str) -> List[Dict[str, Any]]:
        """Origines géolocalisées des clients, hors expéditeur."""
        return await self.db.execute_query(
            """SELECT uo.user_id, uo.latitude, uo.longitude, uo.city, uo.state
            FROM user_origin uo
            JOIN users u ON uo.user_id = u.id
            WHERE u.user_type = 'customer'
                AND uo.latitude IS NOT NULL
                AND uo.longitude IS NOT NULL
                AND u.id != $1""",
            exclude_user_id,
        )

    async def favorite_users(self, restaurant_id: str) -> List[Dict[str, Any]]:
        """Utilisateurs ayant le restaurant en favori, avec leur origine éventuelle."""
        return await self.db.execute_query(
            """SELECT f.user_id, uo.latitude, uo.longitude
            FROM favorites f
            LEFT JOIN user_origin uo ON f.user_id = uo.user_id
            WHERE f.restaurant_id = $1::uuid AND f.type = 'restaurant'""",
            restaurant_id,
        )

    async def insert_recipients(self, rows: List[tuple]) -> None:
        """rows : (message_id, user_id, recipient_type, distance_km)."""
        await self.db.execute_many(
            """INSERT INTO message_recipients
                (message_id, user_id, recipient_type, distance_km)
            VALUES ($1::uuid, $2, $3, $4::numeric)""",
            rows,
        )

    async def insert_notifications(self, rows: List[tuple]) -> None:
        """rows : (user_id, type, title, message, data_json)."""
        await self.db.execute_many(
            """INSERT INTO notifications (user_id, type, title, message, data)
            VALUES ($1, $2, $3, $4, $5::json)""",
            rows,
        )

    async def list_messages(
        self, restaurant_id: str, limit: int, offset: int
    ) -> List[Dict[str, Any]]:
        return await self.db.execute_query(
            """SELECT rm.id::text AS id, rm.title, rm.message, rm.message_type,
                rm.offer_details, rm.target_radius_km, rm.is_active,
                rm.created_at, rm.expires_at,
                COUNT(mr.id) AS total_recipients,
                COUNT(CASE WHEN mr.is_read = true THEN 1 END) AS read_count,
                COUNT(CASE WHEN mr.is_clicked = true THEN 1 END) AS click_count,
                COUNT(CASE WHEN mr.recipient_type = 'nearby' THEN 1 END) AS nearby_count,
                COUNT(CASE WHEN mr.recipient_type = 'favorite' THEN 1 END) AS favorite_count
            FROM restaurant_messages rm
            LEFT JOIN message_recipients mr ON rm.id = mr.message_id
            WHERE rm.restaurant_id = $1::uuid
            GROUP BY rm.id
            ORDER BY rm.created_at DESC
            LIMIT $2 OFFSET $3""",
            restaurant_id, limit, offset,
        )
