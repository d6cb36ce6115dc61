"""Diffusion des messages de restaurateurs aux clients proches et aux fans."""
import json
from typing import Any, Dict, List

from app.config import settings
from app.db.postgres_connector import with_retry
from app.db.repository import SearchRepository
from app.exceptions import InvalidLocationError, InvalidRequestError, RestaurantNotFoundError
from app.logger import logger
from app.models import (
    GeoPoint,
    MessageListResponse,
    MessageRequest,
    MessageResponse,
    MessageSummary,
    Recipient,
)
from app.scoring.proximity import ProximityFilter


def _batches(rows: List[Any], size: int):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class MessageBroadcastService:
    """Calcule les destinataires d'un message et enregistre la diffusion."""

    def __init__(self, repository: SearchRepository):
        self.repository = repository
        self.proximity = ProximityFilter()

    async def _get_owner_restaurant(self, owner_id: str) -> Dict[str, Any]:
        restaurant = await self.repository.get_restaurant_by_owner(owner_id)
        if not restaurant:
            raise RestaurantNotFoundError("No restaurant found for this user")
        return restaurant

    def select_recipients(
        self,
        origin: GeoPoint,
        nearby_rows: List[Dict[str, Any]],
        favorite_rows: List[Dict[str, Any]],
        radius_km: float,
    ) -> List[Recipient]:
        """
        Clients dans le rayon, puis fans du restaurant quelle que soit leur distance.

        Les distances sont arrondies à 2 décimales. Un fan déjà retenu comme
        client proche n'est pas ajouté une seconde fois.
        """
        precision = settings.MESSAGE_DISTANCE_PRECISION
        recipients: List[Recipient] = []
        seen: Dict[str, bool] = {}

        for row in nearby_rows:
            point = GeoPoint.from_values(row.get('latitude'), row.get('longitude'))
            if point is None:
                continue
            decision = self.proximity.evaluate(origin, point, radius_km, precision)
            if decision.qualifies:
                user_id = str(row['user_id'])
                recipients.append(Recipient(
                    user_id=user_id,
                    recipient_type='nearby',
                    distance_km=decision.distance_km,
                ))
                seen[user_id] = True

        for row in favorite_rows:
            user_id = str(row['user_id'])
            if user_id in seen:
                continue
            point = GeoPoint.from_values(row.get('latitude'), row.get('longitude'))
            decision = self.proximity.evaluate(origin, point, radius_km, precision)
            recipients.append(Recipient(
                user_id=user_id,
                recipient_type='favorite',
                distance_km=decision.distance_km,
            ))
            seen[user_id] = True

        return recipients

    async def _store_recipients(
        self,
        message_id: str,
        recipients: List[Recipient],
        restaurant: Dict[str, Any],
        request: MessageRequest,
    ) -> None:
        """Insère destinataires et notifications par lots."""
        recipient_rows = [
            (message_id, r.user_id, r.recipient_type, r.distance_km)
            for r in recipients
        ]
        notification_data = json.dumps({
            'restaurantId': restaurant['id'],
            'messageId': message_id,
            'url': f"/restaurant/{restaurant['id']}",
        })
        title = f"New {request.message_type.value} from {restaurant['name']}"
        notification_rows = [
            (r.user_id, 'message', title, request.title, notification_data)
            for r in recipients
        ]

        size = settings.MESSAGE_BATCH_SIZE
        for batch in _batches(recipient_rows, size):
            await self.repository.insert_recipients(batch)
        for batch in _batches(notification_rows, size):
            await self.repository.insert_notifications(batch)

    async def send(self, request: MessageRequest) -> MessageResponse:
        """
        Diffuse un message du restaurant de `request.user_id`.

        Raises:
            InvalidRequestError: titre ou message manquant.
            RestaurantNotFoundError: l'utilisateur n'a pas de restaurant.
            InvalidLocationError: le restaurant n'a pas de coordonnées.
        """
        if not request.title or not request.message:
            raise InvalidRequestError("Title and message are required")

        restaurant = await self._get_owner_restaurant(request.user_id)
        origin = GeoPoint.from_values(restaurant.get('latitude'), restaurant.get('longitude'))
        if origin is None:
            raise InvalidLocationError(
                "Restaurant location coordinates are required to send messages"
            )

        message_id = await with_retry(lambda: self.repository.insert_message(
            restaurant['id'],
            request.user_id,
            {
                'title': request.title,
                'message': request.message,
                'message_type': request.message_type.value,
                'offer_details': request.offer_details,
                'target_radius_km': request.target_radius_km,
                'expires_at': request.expires_at,
            },
        ))

        nearby_rows = await self.repository.customer_origins(request.user_id)
        favorite_rows = await self.repository.favorite_users(restaurant['id'])
        recipients = self.select_recipients(
            origin, nearby_rows, favorite_rows, request.target_radius_km
        )

        if recipients:
            await self._store_recipients(message_id, recipients, restaurant, request)

        nearby_count = sum(1 for r in recipients if r.recipient_type == 'nearby')
        favorite_count = len(recipients) - nearby_count

        logger.info(
            "Message {message_id} de '{restaurant}' : {nearby} proches, {favorites} fans "
            "(rayon {radius} km)",
            message_id=message_id, restaurant=restaurant['name'],
            nearby=nearby_count, favorites=favorite_count,
            radius=request.target_radius_km,
        )

        return MessageResponse(
            message_id=message_id,
            summary=MessageSummary(
                total_recipients=len(recipients),
                nearby_users=nearby_count,
                favorite_users=favorite_count,
                radius_km=request.target_radius_km,
                restaurant_name=restaurant['name'],
            ),
        )

    async def list_messages(
        self, owner_id: str, limit: int = 20, offset: int = 0
    ) -> MessageListResponse:
        """Messages envoyés par le restaurant de l'utilisateur, avec leurs statistiques."""
        restaurant = await self._get_owner_restaurant(owner_id)
        messages = await self.repository.list_messages(restaurant['id'], limit, offset)
        return MessageListResponse(
            messages=messages,
            restaurant={'id': restaurant['id'], 'name': restaurant['name']},
        )
