"""Background job that re-verifies auth records before their sessions go stale."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from jukebox.clients.providers.base import ProviderError
from jukebox.models import utcnow
from jukebox.services.auth_records import AuthInvalidError, AuthRecordService

if TYPE_CHECKING:
    from jukebox.clients.providers import ProviderRegistry
    from jukebox.clients.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReauthSummary:
    """Outcome of one scheduler tick."""

    renewed: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


class ReauthScheduler:
    """Every tick, renew valid auth records older than their provider's reauth interval."""

    def __init__(
        self,
        store: "SQLiteStore",
        providers: "ProviderRegistry",
        auth_service: AuthRecordService,
        tick_seconds: float = 30.0,
    ) -> None:
        self._store = store
        self._providers = providers
        self._auth = auth_service
        self._tick_seconds = tick_seconds
        self._task: Optional[asyncio.Task] = None

    async def run_once(self, now: Optional[datetime] = None) -> ReauthSummary:
        now = now or utcnow()
        summary = ReauthSummary()

        for slug, provider in self._providers.items():
            cutoff = now - provider.descriptor.reauth_interval
            due = self._store.list_due_auth_records(slug, cutoff)
            if not due:
                continue

            logger.debug("Renewing auth", extra={"provider": slug, "auth_count": len(due)})
            for record in due:
                try:
                    await self._auth.ensure_authenticated(provider, record.token(), record)
                except (ProviderError, AuthInvalidError) as exc:
                    logger.warning(
                        "Could not do reauth",
                        extra={"auth_id": record.id, "provider": slug, "error": str(exc)},
                    )
                    summary.failed.append(record.id)
                except Exception:
                    logger.exception(
                        "Unexpected reauth failure",
                        extra={"auth_id": record.id, "provider": slug},
                    )
                    summary.failed.append(record.id)
                else:
                    summary.renewed.append(record.id)

        if summary.renewed or summary.failed:
            logger.info(
                "Reauth tick finished",
                extra={"renewed": len(summary.renewed), "failed": len(summary.failed)},
            )
        return summary

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:  # pragma: no cover - keep ticking after store errors
                logger.exception("Reauth tick failed")
            await asyncio.sleep(self._tick_seconds)

    def start(self) -> asyncio.Task:
        """Schedule ``run_forever`` on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="jukebox-reauth")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


async def main() -> None:
    from jukebox.core.config import get_settings
    from jukebox.core.logging import configure_logging
    from jukebox.dependencies import build_auth_context

    settings = get_settings()
    configure_logging(settings.log_level)
    context = build_auth_context(settings)
    scheduler = ReauthScheduler(
        store=context.store,
        providers=context.providers,
        auth_service=context.auth_records,
        tick_seconds=settings.reauth.tick_seconds,
    )
    await scheduler.run_forever()


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Reauth worker stopped")
