import logging
from typing import Optional
from postgrest.exceptions import APIError
from supabase import create_client, Client
from app.config import settings
from app.core.exceptions import NotFoundError, StorageError

logger = logging.getLogger(__name__)


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Used by the chat gateway, which has no request JWT."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client or cls.get_client()


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def get_service_supabase() -> Client:
    return SupabaseClient.get_service_client()


# Postgres error codes surfaced by PostgREST
UNIQUE_VIOLATION = "23505"
INVALID_TEXT_REPRESENTATION = "22P02"
FOREIGN_KEY_VIOLATION = "23503"


def execute(query, action: str, not_found: Optional[str] = None):
    """Run a PostgREST query; storage failures become StorageError with the cause logged.

    When ``not_found`` is given, a malformed or dangling id is reported as
    NotFoundError with that message instead of a storage failure.
    """
    try:
        return query.execute()
    except APIError as e:
        if not_found and e.code in (INVALID_TEXT_REPRESENTATION, FOREIGN_KEY_VIOLATION):
            raise NotFoundError(not_found) from e
        logger.exception(f"Error {action}: {e}")
        raise StorageError() from e
    except Exception as e:
        logger.exception(f"Error {action}: {e}")
        raise StorageError() from e
