from supabase import create_client, Client
from app.config.settings import settings
import logging

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Process-wide clients: anon key for request handling, service role for auth admin calls."""
    _client: Client = None
    _admin_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            if not settings.supabase_url or not settings.supabase_key:
                raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set")
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
            logger.info("Supabase client created")
        return cls._client

    @classmethod
    def get_admin_client(cls) -> Client:
        """Service-role client; required to write app_metadata role claims."""
        if cls._admin_client is None and settings.supabase_service_role_key:
            cls._admin_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        if cls._admin_client is None:
            logger.warning("SUPABASE_SERVICE_ROLE_KEY not set, falling back to the anon client")
        return cls._admin_client or cls.get_client()

    @classmethod
    def ping(cls) -> bool:
        """One cheap read against the users table"""
        try:
            cls.get_client().table("users").select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.warning(f"Supabase not reachable: {str(e)}")
            return False

    @classmethod
    def reset(cls):
        cls._client = None
        cls._admin_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()
