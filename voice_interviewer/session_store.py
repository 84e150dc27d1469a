"""Key-value persistence for interview sessions and candidate profiles."""
import time
from typing import Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError
import structlog
from pydantic import ValidationError

from voice_interviewer.config import settings
from voice_interviewer.database.schemas import CandidateProfile, InterviewSession

logger = structlog.get_logger()


class SessionStoreError(RuntimeError):
    """The backing store failed to read or write."""


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def candidate_key(email: str) -> str:
    return f"candidate:{email.strip().lower()}"


class SessionStore:
    """Typed session/profile access over a string key-value backend."""

    backend = "abstract"

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = ttl_seconds or settings.SESSION_TTL_SECONDS

    async def _set(self, key: str, value: str, ttl: int) -> None:
        raise NotImplementedError

    async def _get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def _delete(self, key: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass

    async def save_session(self, session: InterviewSession) -> None:
        await self._set(session_key(session.session_id), session.model_dump_json(), self.ttl_seconds)

    async def get_session(self, session_id: str) -> Optional[InterviewSession]:
        raw = await self._get(session_key(session_id))
        if raw is None:
            return None
        try:
            return InterviewSession.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Stored session is unreadable", session_id=session_id, error=str(e))
            return None

    async def delete_session(self, session_id: str) -> None:
        await self._delete(session_key(session_id))

    async def save_candidate(self, profile: CandidateProfile) -> None:
        if not profile.email:
            return
        await self._set(candidate_key(profile.email), profile.model_dump_json(), self.ttl_seconds)

    async def get_candidate(self, email: str) -> Optional[CandidateProfile]:
        raw = await self._get(candidate_key(email))
        if raw is None:
            return None
        try:
            return CandidateProfile.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Stored candidate profile is unreadable", email=email, error=str(e))
            return None


class MemorySessionStore(SessionStore):
    """Process-local store; entries expire after their TTL."""

    backend = "memory"

    def __init__(self, ttl_seconds: Optional[int] = None):
        super().__init__(ttl_seconds)
        self._data: Dict[str, Tuple[str, float]] = {}

    async def _set(self, key: str, value: str, ttl: int) -> None:
        self._data[key] = (value, time.monotonic() + ttl)

    async def _get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    async def _delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisSessionStore(SessionStore):
    backend = "redis"

    def __init__(self, client: "redis.Redis", ttl_seconds: Optional[int] = None):
        super().__init__(ttl_seconds)
        self.client = client

    async def _set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self.client.setex(key, ttl, value)
        except RedisError as e:
            logger.error("Redis write failed", key=key, error=str(e))
            raise SessionStoreError(f"Failed to write {key}") from e

    async def _get(self, key: str) -> Optional[str]:
        try:
            value = await self.client.get(key)
        except RedisError as e:
            logger.error("Redis read failed", key=key, error=str(e))
            raise SessionStoreError(f"Failed to read {key}") from e
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def _delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as e:
            logger.error("Redis delete failed", key=key, error=str(e))
            raise SessionStoreError(f"Failed to delete {key}") from e

    async def close(self) -> None:
        await self.client.aclose()


async def create_session_store(redis_url: Optional[str] = None, ttl_seconds: Optional[int] = None) -> SessionStore:
    """Pick the store once at startup: Redis when reachable, otherwise in-process."""
    url = settings.REDIS_URL if redis_url is None else redis_url
    if not url:
        logger.info("No Redis URL configured, using in-memory session store")
        return MemorySessionStore(ttl_seconds)

    client = redis.from_url(url, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning("Redis unreachable, using in-memory session store", url=url, error=str(e))
        await client.aclose()
        return MemorySessionStore(ttl_seconds)

    logger.info("Connected to Redis session store", url=url)
    return RedisSessionStore(client, ttl_seconds)
