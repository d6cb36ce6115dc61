"""PostgreSQL database connector."""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

import asyncpg

from app.config import settings
from app.logger import logger

T = TypeVar("T")

# Erreurs transitoires justifiant une nouvelle tentative
RETRYABLE_ERRORS = (
    ConnectionError,
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.TooManyConnectionsError,
)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    attempts: int = settings.DB_RETRY_ATTEMPTS,
    delay: float = settings.DB_RETRY_DELAY,
) -> T:
    """
    Exécute `operation` avec nouvelles tentatives et attente croissante.

    Attend `delay * tentative` secondes entre deux essais et relance la
    dernière erreur quand toutes les tentatives ont échoué.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            logger.warning(
                "Tentative {attempt}/{attempts} échouée : {error}",
                attempt=attempt, attempts=attempts, error=e,
            )
            if attempt == attempts:
                raise
            await asyncio.sleep(delay * attempt)
    raise ValueError("attempts must be >= 1")


class PostgresConnector:
    """Gère un pool de connexions asynchrone à PostgreSQL en utilisant l'URL."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Initialise le pool de connexions."""
        self._pool = await asyncpg.create_pool(
            dsn=self.database_url,
            max_size=settings.DB_POOL_MAX_SIZE,
        )
        logger.info("Pool de connexions asyncpg initialisé.")

    def _require_pool(self) -> asyncpg.Pool:
        if not self._pool:
            raise ConnectionError("Connection pool not initialized. Call .connect() first.")
        return self._pool

    async def execute_query(self, sql: str, *args) -> List[Dict[str, Any]]:
        """Exécute une requête SQL et retourne les lignes sous forme de dicts."""
        pool = self._require_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(sql, *args)
            return [dict(row) for row in rows]

    async def fetch_one(self, sql: str, *args) -> Optional[Dict[str, Any]]:
        """Exécute une requête et retourne la première ligne, ou None."""
        pool = self._require_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(sql, *args)
            return dict(row) if row is not None else None

    async def execute_many(self, sql: str, args: Iterable[tuple]) -> None:
        """Exécute une commande pour chaque tuple, dans une transaction."""
        pool = self._require_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(sql, list(args))

    async def close(self):
        """Ferme le pool de connexions proprement."""
        if self._pool:
            await self._pool.close()
