"""Calcul de distance géographique (formule de haversine)."""
import math
from typing import Tuple

from app.config import settings
from app.models import GeoPoint

EARTH_RADIUS_KM = 6371.0
# Longueur d'un degré de latitude (km)
KM_PER_DEGREE = math.pi * EARTH_RADIUS_KM / 180.0
# Marge couvrant l'arrondi des distances comparées au rayon
BOX_MARGIN_KM = 0.1


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance orthodromique en kilomètres entre deux coordonnées.

    Aucune validation : l'appelant fournit des coordonnées finies.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    # Les arrondis flottants peuvent pousser `a` très légèrement hors de [0, 1]
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class GeoDistance:
    """Classe pour calculer les distances entre points géographiques."""

    def distance_km(
        self,
        origin: GeoPoint,
        target: GeoPoint,
        precision: int = settings.SEARCH_DISTANCE_PRECISION,
    ) -> float:
        """
        Calcule la distance arrondie entre deux points.

        Args:
            origin: Point du demandeur
            target: Point de l'entité
            precision: Nombre de décimales (1 pour la recherche, 2 pour la messagerie)

        Returns:
            Distance en kilomètres, positive ou nulle
        """
        raw = haversine_km(
            origin.latitude, origin.longitude,
            target.latitude, target.longitude,
        )
        return round(raw, precision)

    def bounding_box(
        self, center: GeoPoint, radius_km: float
    ) -> Tuple[float, float, float, float]:
        """
        Enveloppe lat/lng contenant le cercle de rayon `radius_km`.

        Sert de prédicat SQL peu coûteux ; le test exact de haversine est
        toujours refait côté Python.

        Returns:
            (min_lat, max_lat, min_lng, max_lng)
        """
        radius_km = radius_km + BOX_MARGIN_KM
        delta_lat = radius_km / KM_PER_DEGREE
        min_lat = max(-90.0, center.latitude - delta_lat)
        max_lat = min(90.0, center.latitude + delta_lat)

        cos_lat = math.cos(math.radians(max(abs(min_lat), abs(max_lat))))
        if cos_lat <= 1e-9 or min_lat <= -90.0 or max_lat >= 90.0:
            return min_lat, max_lat, -180.0, 180.0

        delta_lng = radius_km / (KM_PER_DEGREE * cos_lat)
        if delta_lng >= 180.0:
            return min_lat, max_lat, -180.0, 180.0

        min_lng = center.longitude - delta_lng
        max_lng = center.longitude + delta_lng
        # Franchissement de l'antiméridien : on ouvre toute la plage
        if min_lng < -180.0 or max_lng > 180.0:
            return min_lat, max_lat, -180.0, 180.0
        return min_lat, max_lat, min_lng, max_lng


# Instance globale réutilisable
geo_distance = GeoDistance()
