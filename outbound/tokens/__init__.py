"""OAuth token acquisition and caching."""

from outbound.tokens.cache import TokenCache
from outbound.tokens.endpoint import TokenEndpoint
from outbound.tokens.models import CachedToken, TokenGrant


__all__ = ["CachedToken", "TokenCache", "TokenEndpoint", "TokenGrant"]
