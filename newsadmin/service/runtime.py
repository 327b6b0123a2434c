from __future__ import annotations

import threading

from newsadmin.config import Environment, get_settings, reset_settings_cache
from newsadmin.logging import get_logger, mask_dsn
from newsadmin.service.analytics import AnalyticsReporter
from newsadmin.service.auth import AuthService
from newsadmin.service.content import FeedbackService, NewsService, VideoService
from newsadmin.storage.memory import MemoryStore
from newsadmin.storage.postgres import PostgresStore

logger = get_logger(__name__)


class Runtime:
    """Holds singleton service instances for the FastAPI app."""

    def __init__(self):
        self.settings = get_settings()
        store_type = "memory" if self.settings.use_memory_store else "postgres"
        logger.info(
            "runtime_init_started",
            store_type=store_type,
            environment=self.settings.environment.value,
        )
        try:
            self.store = (
                MemoryStore()
                if self.settings.use_memory_store
                else PostgresStore(self.settings.database_url)
            )
        except Exception as exc:
            logger.error(
                "runtime_store_init_failed",
                store_type=store_type,
                database_url=mask_dsn(self.settings.database_url),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise
        logger.info("runtime_store_initialized", store_type=store_type)

        self.auth = AuthService(self.store, self.settings)
        self.news = NewsService(self.store)
        self.videos = VideoService(self.store)
        self.feedback = FeedbackService(self.store)
        self.analytics = AnalyticsReporter(self.store)

    async def bootstrap_admin(self) -> None:
        """Seed the default admin when BOOTSTRAP_ADMIN is enabled."""
        if not self.settings.bootstrap_admin:
            return
        if not self.settings.admin_password:
            logger.warning(
                "admin_bootstrap_skipped",
                reason="ADMIN_PASSWORD is not set",
                email=self.settings.admin_email,
            )
            return
        user, created = await self.auth.bootstrap_admin(
            self.settings.admin_email,
            self.settings.admin_password,
            self.settings.admin_name,
        )
        logger.info("admin_bootstrap_complete", user_id=user.id, created=created)

    def close(self) -> None:
        self.store.close()


runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner.

    Uses double-checked locking:
    - First check without lock (fast path for existing runtime)
    - Second check with lock to prevent a race during creation
    """
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests() -> Runtime:
    """Reinitialize the runtime singleton for isolated test runs."""
    global runtime

    with _runtime_lock:
        if runtime is not None:
            runtime.close()
        reset_settings_cache()
        settings = get_settings()
        if settings.environment is not Environment.TEST:
            raise RuntimeError("runtime reset is only allowed when ENVIRONMENT=test")
        runtime = Runtime()
        return runtime
