"""Interprétation des requêtes texte/image par LLM (Groq) pour l'ai-search."""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from groq import AsyncGroq

from app.config import settings
from app.exceptions import QueryInterpretationError
from app.logger import logger

TEXT_SYSTEM_PROMPT = (
    "You are a food search assistant. Extract search keywords from user "
    "queries about food, restaurants, or cuisines. Return a JSON with keys: "
    "intent, searchTerms (array), cuisine, dietary (array of dietary "
    "preferences like vegan, gluten-free)."
)

IMAGE_PROMPT = (
    "Analyze this food image and extract: 1) Name of the dish, 2) Type of "
    "cuisine, 3) Key ingredients, 4) Cooking style. Respond in JSON format "
    "with keys: dishName, cuisine, ingredients, cookingStyle, searchTerms "
    "(array of keywords for database search)."
)


@dataclass
class Interpretation:
    """Termes de recherche extraits et résumé lisible de l'analyse."""
    search_terms: List[str] = field(default_factory=list)
    analysis: str = ""


def _parse_json(text: str) -> Optional[Dict[str, Any]]:
    """Parse la réponse du modèle, éventuellement entourée d'un bloc ```json."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _as_terms(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value if v]
    if isinstance(value, str) and value:
        return [value]
    return []


class QueryInterpreter:
    """Extrait des termes de recherche via l'API chat completions de Groq."""

    def __init__(self, client: Optional[AsyncGroq] = None):
        self._client = client

    @property
    def client(self) -> AsyncGroq:
        if self._client is None:
            self._client = AsyncGroq(
                api_key=settings.GROQ_API_KEY, timeout=settings.LLM_TIMEOUT
            )
        return self._client

    async def _complete(self, model: str, messages: List[Dict[str, Any]], max_tokens: int) -> str:
        completion = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
        )
        return completion.choices[0].message.content or ""

    async def interpret_image(self, image_data: str) -> Interpretation:
        """
        Analyse une photo de plat (base64 JPEG).

        Raises:
            QueryInterpretationError: si l'appel au modèle échoue.
        """
        try:
            text = await self._complete(
                settings.LLM_VISION_MODEL,
                [{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": IMAGE_PROMPT},
                        {"type": "image_url",
                         "image_url": {"url": f"data:image/jpeg;base64,{image_data}"}},
                    ],
                }],
                settings.LLM_IMAGE_MAX_TOKENS,
            )
        except Exception as e:
            logger.exception("Image analysis failed")
            raise QueryInterpretationError("Image analysis failed") from e

        if not text:
            return Interpretation()

        parsed = _parse_json(text)
        if parsed is None:
            # Réponse non JSON : on garde les 5 premiers mots
            return Interpretation(search_terms=text.split(' ')[:5], analysis=text)

        dish_name = parsed.get("dishName")
        cuisine = parsed.get("cuisine")
        terms = _as_terms(parsed.get("searchTerms")) or _as_terms([dish_name, cuisine])
        return Interpretation(
            search_terms=terms,
            analysis=f"Detected: {dish_name} ({cuisine} cuisine)",
        )

    async def interpret_text(self, query: str) -> Interpretation:
        """Extrait des mots-clés d'une requête texte ; découpe simple en cas d'échec."""
        fallback = Interpretation(search_terms=query.split(' '), analysis=query)
        try:
            text = await self._complete(
                settings.LLM_MODEL,
                [
                    {"role": "system", "content": TEXT_SYSTEM_PROMPT},
                    {"role": "user", "content": query},
                ],
                settings.LLM_TEXT_MAX_TOKENS,
            )
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("Text analysis failed, keyword fallback: {error}", error=e)
            return fallback

        if not text:
            return Interpretation(analysis=query)

        parsed = _parse_json(text)
        if parsed is None:
            return fallback
        return Interpretation(search_terms=_as_terms(parsed.get("searchTerms")), analysis=query)


query_interpreter = QueryInterpreter()
