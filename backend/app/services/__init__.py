"""Application service helpers."""

from .cache import CacheBackend, InMemoryCache, RedisCache, connect_cache
from .directory import DirectoryResolver
from .gateway import GatewayPolicy, JoinRequest, NotificationGateway, build_gateway
from .identity import Credentials, IdentityResolver
from .platform import (
    HttpPlatformClient,
    PlatformAuthError,
    PlatformClient,
    PlatformError,
    PlatformNotFoundError,
    PlatformPermissionError,
)
from .posts import PostPublisher
from .threads import ThreadLocator

__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
    "connect_cache",
    "Credentials",
    "IdentityResolver",
    "DirectoryResolver",
    "ThreadLocator",
    "PostPublisher",
    "GatewayPolicy",
    "JoinRequest",
    "NotificationGateway",
    "build_gateway",
    "PlatformClient",
    "HttpPlatformClient",
    "PlatformError",
    "PlatformAuthError",
    "PlatformNotFoundError",
    "PlatformPermissionError",
]
