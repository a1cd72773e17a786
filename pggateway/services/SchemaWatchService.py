import asyncio
import contextlib
import logging
from typing import Callable, Optional

from pggateway.core.exceptions import IntrospectionError
from pggateway.graphql.introspection import SchemaIntrospector, SchemaSnapshot

logger = logging.getLogger(__name__)


class SchemaWatchService:
    """
    Polls the schema fingerprint and re-introspects when it changes.

    Failures are logged and retried on the next tick; the live GraphQL
    schema is only replaced after a successful introspection.
    """

    def __init__(
        self,
        introspector: SchemaIntrospector,
        on_change: Callable[[SchemaSnapshot], None],
        interval: float,
        fingerprint: str = "",
    ):
        self.introspector = introspector
        self.on_change = on_change
        self.interval = interval
        self.fingerprint = fingerprint
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> bool:
        """Return True when a new snapshot was applied."""
        try:
            current = await self.introspector.fingerprint()
            if current == self.fingerprint:
                return False
            snapshot = await self.introspector.introspect()
        except IntrospectionError as e:
            logger.warning(f"[Watch] schema poll failed: {e}")
            return False

        logger.info(f"[Watch] schema {self.introspector.schema} changed, rebuilding GraphQL schema")
        self.on_change(snapshot)
        self.fingerprint = snapshot.fingerprint
        return True

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.poll_once()
            except Exception:
                # keep polling after a failed rebuild
                logger.exception("[Watch] rebuilding GraphQL schema failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name="schema-watch")
        logger.info(f"[Watch] watching schema {self.introspector.schema} every {self.interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
