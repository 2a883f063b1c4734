"""Cache key schema for Campus.

Key format: {namespace}:{tenant}:{domain}:{subject}:{qualifier}

Where:
- namespace: "campus" (configurable, shared Redis databases)
- tenant: tenant identifier, or "!global" for lookups no tenant owns
- domain: read-model family ("course", "user", "dashboard", ...)
- subject: entity id, empty for tenant-wide collections
- qualifier: variant of the entry ("detail", "stats", "list.<filters hash>")

Every component is percent-encoded, so ":" and the Redis glob characters
never appear inside one. A prefix ending in ":" therefore only ever covers
the tenant (and domain, and subject) it names.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote, unquote

import orjson

from campus.cache.errors import InvalidKeyError

SEPARATOR = ":"
GLOBAL_SCOPE = "!global"


class CacheDomain(str, Enum):
    """Read-model families cached per tenant."""

    COURSE = "course"
    CATEGORY = "category"
    USER = "user"
    PROGRESS = "progress"
    PURCHASE = "purchase"
    CERTIFICATE = "certificate"
    ENROLLMENT = "enrollment"
    SESSION = "session"
    TENANT = "tenant"
    DASHBOARD = "dashboard"


@dataclass(frozen=True)
class ParsedKey:
    """Decoded components of a cache key."""

    namespace: str
    tenant_id: str
    domain: str
    subject: str
    qualifier: str
    is_global: bool = False


def _encode(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    return quote(str(value), safe="")


def _required(value: Any, name: str) -> str:
    encoded = _encode(value)
    if not encoded:
        raise InvalidKeyError(f"Cache key component {name!r} is required")
    return encoded


def filters_hash(filters: Mapping[str, Any] | None) -> str:
    """Stable digest of a filter set for use as a key qualifier.

    Key order does not matter; values must be JSON-serializable.
    """
    if not filters:
        return ""
    payload = orjson.dumps(dict(filters), option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS)
    return hashlib.sha256(payload).hexdigest()[:16]


class KeyBuilder:
    """Cache key generator following the namespace/tenant/domain convention."""

    def __init__(self, namespace: str = "campus") -> None:
        if not namespace or SEPARATOR in namespace:
            raise InvalidKeyError(f"Invalid cache namespace: {namespace!r}")
        self.namespace = namespace

    def build(
        self,
        tenant_id: Any,
        domain: CacheDomain | str,
        subject: Any = None,
        qualifier: Any = None,
    ) -> str:
        """Key for a tenant-owned cache entry.

        Raises:
            InvalidKeyError: If tenant_id or domain is missing or empty
        """
        parts = [
            self.namespace,
            _required(tenant_id, "tenant_id"),
            _required(domain, "domain"),
            _encode(subject),
            _encode(qualifier),
        ]
        return SEPARATOR.join(parts)

    def build_global(
        self,
        domain: CacheDomain | str,
        subject: Any = None,
        qualifier: Any = None,
    ) -> str:
        """Key for an entry that belongs to no tenant (e.g. tenant-by-domain)."""
        parts = [
            self.namespace,
            GLOBAL_SCOPE,
            _required(domain, "domain"),
            _encode(subject),
            _encode(qualifier),
        ]
        return SEPARATOR.join(parts)

    def prefix(
        self,
        tenant_id: Any,
        domain: CacheDomain | str | None = None,
        subject: Any = None,
    ) -> str:
        """Prefix covering a tenant, a tenant domain, or one subject in it.

        Pass subject="" to select the tenant's collection entries of a domain.
        """
        parts = [self.namespace, _required(tenant_id, "tenant_id")]
        if domain is not None:
            parts.append(_required(domain, "domain"))
            if subject is not None:
                parts.append(_encode(subject))
        elif subject is not None:
            raise InvalidKeyError("A subject prefix requires a domain")
        return SEPARATOR.join(parts) + SEPARATOR

    def global_prefix(self, domain: CacheDomain | str | None = None) -> str:
        parts = [self.namespace, GLOBAL_SCOPE]
        if domain is not None:
            parts.append(_required(domain, "domain"))
        return SEPARATOR.join(parts) + SEPARATOR

    def namespace_prefix(self) -> str:
        return f"{self.namespace}{SEPARATOR}"

    def parse(self, key: str) -> ParsedKey | None:
        """Parse a cache key into its components.

        Returns None if the key doesn't belong to this namespace.
        """
        parts = key.split(SEPARATOR)
        if len(parts) != 5 or parts[0] != self.namespace:
            return None

        is_global = parts[1] == GLOBAL_SCOPE
        tenant = parts[1] if is_global else unquote(parts[1])
        return ParsedKey(
            namespace=parts[0],
            tenant_id=tenant,
            domain=unquote(parts[2]),
            subject=unquote(parts[3]),
            qualifier=unquote(parts[4]),
            is_global=is_global,
        )

    def scope_of(self, key: str) -> str:
        """Namespace and tenant portion of a key or prefix, including the separator.

        Used to bucket keys per tenant; returns "" for foreign keys.
        """
        parts = key.split(SEPARATOR)
        if len(parts) < 3 or parts[0] != self.namespace or not parts[1]:
            return ""
        return SEPARATOR.join(parts[:2]) + SEPARATOR


def build_key(
    tenant_id: Any,
    domain: CacheDomain | str,
    subject: Any = None,
    qualifier: Any = None,
    *,
    namespace: str = "campus",
) -> str:
    """Build a key without keeping a KeyBuilder around."""
    return KeyBuilder(namespace).build(tenant_id, domain, subject, qualifier)
