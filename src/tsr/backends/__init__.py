"""Remote storage backends for the persistence gateway."""

from .supabase_gateway import SupabaseGateway

__all__ = ["SupabaseGateway"]
