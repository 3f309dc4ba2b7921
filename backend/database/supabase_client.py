"""
Supabase client for the learning backend.

Uses the service-role key: the learning pipeline writes rules, tracking rows
and tool genome records on behalf of users, bypassing row level security.
"""

import os
import threading
from typing import Optional

from supabase import Client, create_client

_client: Optional[Client] = None
_client_lock = threading.Lock()


def get_supabase() -> Client:
    """
    Get the shared Supabase client, creating it on first use.

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is missing
    """
    global _client

    if _client is not None:
        return _client

    with _client_lock:
        if _client is None:
            url = os.getenv('SUPABASE_URL')
            key = os.getenv('SUPABASE_SERVICE_ROLE_KEY')
            if not url or not key:
                raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
            _client = create_client(url, key)

    return _client
