"""Producer presence announcements for consumers."""
from __future__ import annotations

import logging

from ..schemas.signaling import PresenceOffline, PresenceOnline, Role
from .router import SignalingRouter

logger = logging.getLogger(__name__)


class PresenceNotifier:
    """Tell every consumer when a producer comes or goes.

    Consumer arrivals and departures are not announced to anyone.
    """

    def __init__(self, router: SignalingRouter) -> None:
        self._router = router

    async def producer_registered(self, connection_id: str) -> int:
        notified = await self._router.broadcast(Role.CONSUMER, PresenceOnline(), exclude=connection_id)
        logger.info("Producer %s online, notified %d consumer(s)", connection_id, notified)
        return notified

    async def producer_unregistered(self, connection_id: str) -> int:
        notified = await self._router.broadcast(Role.CONSUMER, PresenceOffline(), exclude=connection_id)
        logger.info("Producer %s offline, notified %d consumer(s)", connection_id, notified)
        return notified
