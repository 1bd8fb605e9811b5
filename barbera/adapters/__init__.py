"""
Adapters layer - Store implementations (Supabase and in-memory).
"""

from .memory_store import InMemoryStore
from .supabase_store import SupabaseStore

__all__ = ["InMemoryStore", "SupabaseStore"]
