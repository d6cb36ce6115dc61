"""Exceptions métier, traduites en codes HTTP par app.main."""


class InvalidRequestError(ValueError):
    """Requête inexploitable (texte vide, aucun terme, champ requis manquant)."""


class InvalidLocationError(ValueError):
    """Coordonnées absentes ou invalides là où elles sont requises."""


class RestaurantNotFoundError(LookupError):
    """Aucun restaurant pour ce propriétaire."""


class QueryInterpretationError(RuntimeError):
    """Échec de l'analyse LLM d'une image."""
