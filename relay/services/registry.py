"""In-memory registry of signaling connections and their roles."""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Dict, Optional

from ..schemas.signaling import Role

logger = logging.getLogger(__name__)


class DuplicateRegistration(RuntimeError):
    """Raised when a connection id registers a second time."""


class ConnectionNotFound(KeyError):
    """Raised when looking up a connection id that is not registered."""


class ConnectionRegistry:
    """Track which role each live connection registered with.

    Only identifiers are stored here; live transport handles belong to the
    transport layer and are resolved by id at delivery time.
    """

    def __init__(self) -> None:
        self._roles: Dict[str, Role] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection_id: str, role: Role) -> None:
        """Insert a connection with an immutable role."""

        async with self._lock:
            if connection_id in self._roles:
                raise DuplicateRegistration(connection_id)
            self._roles[connection_id] = role
        logger.info("Registered %s: %s", role.value, connection_id)

    async def unregister(self, connection_id: str) -> Optional[Role]:
        """Remove a connection, returning the role it held (``None`` if absent)."""

        async with self._lock:
            role = self._roles.pop(connection_id, None)
        if role is not None:
            logger.info("Unregistered %s: %s", role.value, connection_id)
        return role

    async def role_of(self, connection_id: str) -> Role:
        async with self._lock:
            try:
                return self._roles[connection_id]
            except KeyError:
                raise ConnectionNotFound(connection_id) from None

    async def connections_with_role(self, role: Role) -> frozenset[str]:
        """Return a snapshot of ids currently registered with ``role``."""

        async with self._lock:
            return frozenset(cid for cid, held in self._roles.items() if held is role)

    async def count(self, role: Role | None = None) -> int:
        async with self._lock:
            if role is None:
                return len(self._roles)
            return sum(1 for held in self._roles.values() if held is role)

    async def counts(self) -> Counter[Role]:
        """Per-role counts taken under a single lock acquisition."""

        async with self._lock:
            return Counter(self._roles.values())

    async def clear(self) -> None:
        async with self._lock:
            self._roles.clear()
