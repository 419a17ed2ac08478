from typing import Optional

from supabase import create_client, Client

from mockbook.config import Config
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

_supabase: Optional[Client] = None


def get_supabase(config: Config) -> Client:
    """Supabase client, created on first use from SUPABASE_URL / SUPABASE_SERVICE_KEY."""
    global _supabase
    if _supabase is None:
        if not config.supabase.url or not config.supabase.service_key:
            logger.warning("[Supabase] SUPABASE_URL or SUPABASE_SERVICE_KEY not set!")
        _supabase = create_client(config.supabase.url, config.supabase.service_key)
    return _supabase
