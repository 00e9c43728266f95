"""NodeGazeEngine — central engine client owning all services."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from nodegaze.cache.client import CacheClient
    from nodegaze.config.settings import AppConfig
    from nodegaze.datastore.client import Datastore
    from nodegaze.engine.services.event_service import EventService
    from nodegaze.engine.services.ledger_service import LedgerService
    from nodegaze.engine.services.notification_service import NotificationService
    from nodegaze.metrics.collector import EngineMetrics
    from nodegaze.notifications.dispatcher import DeliveryDispatcher
    from nodegaze.taskmanager.manager import TaskManager

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."
_ERR_DELIVERY_DISABLED = "Notification delivery is disabled."


class NodeGazeEngine:
    """Central engine that owns all services and infrastructure.

    Provides lifecycle management and a service registry for the event
    store, the notification registry, the delivery ledger and the delivery
    dispatcher.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        metrics: EngineMetrics | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            metrics: Metrics to report into; the API shares its registry
                this way. A private set is created when omitted.
            transport: Optional httpx transport for outbound deliveries
                (tests pass an ``httpx.MockTransport``).
        """
        self._config = config
        self._given_metrics = metrics
        self._transport = transport
        self._initialized = False

        # Infrastructure components
        self._datastore: Datastore | None = None
        self._cache: CacheClient | None = None

        # Services
        self._event_service: EventService | None = None
        self._notification_service: NotificationService | None = None
        self._ledger_service: LedgerService | None = None
        self._delivery: DeliveryDispatcher | None = None
        self._task_manager: TaskManager | None = None
        self._metrics: EngineMetrics | None = None

    async def initialize(self) -> None:
        """Initialize datastore, run migrations, and start services.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        from nodegaze.cache.client import CacheClient
        from nodegaze.datastore.client import Datastore
        from nodegaze.datastore.migrations import run_auto_migrate

        self._datastore = Datastore(self._config.db)
        await self._datastore.open()
        await run_auto_migrate(self._datastore.engine)

        self._cache = CacheClient(self._config.cache)
        await self._cache.connect()

        from nodegaze.metrics.collector import EngineMetrics

        self._metrics = self._given_metrics or EngineMetrics()

        from nodegaze.engine.services.event_service import EventService
        from nodegaze.engine.services.ledger_service import LedgerService
        from nodegaze.engine.services.notification_service import NotificationService

        self._event_service = EventService(self)
        self._notification_service = NotificationService(self)
        self._ledger_service = LedgerService(self)

        if self._config.delivery.enabled:
            from nodegaze.notifications.dispatcher import DeliveryDispatcher

            self._delivery = DeliveryDispatcher(
                self._datastore,
                self._config.delivery,
                metrics=self._metrics,
                transport=self._transport,
            )
            await self._delivery.start()

        from nodegaze.taskmanager.manager import CronJob, TaskManager
        from nodegaze.taskmanager.tasks import (
            CALCULATE_METRICS,
            DELIVERY_SWEEP,
            task_calculate_metrics,
            task_delivery_sweep,
        )

        if self._config.task.enabled:
            self._task_manager = TaskManager(
                metrics=self._metrics,
                cache=self._cache,
                lock_ttl=self._config.task.lock_ttl,
            )
            if self._delivery is not None:
                self._task_manager.register(
                    DELIVERY_SWEEP,
                    CronJob(
                        handler=partial(task_delivery_sweep, self),
                        period=self._config.task.sweep_period,
                        exclusive=True,
                    ),
                )
            self._task_manager.register(
                CALCULATE_METRICS,
                CronJob(
                    handler=partial(task_calculate_metrics, self, self._metrics),
                    period=self._config.task.metrics_period,
                    exclusive=True,
                ),
            )
            await self._task_manager.start()

        self._initialized = True
        logger.info("NodeGaze engine initialized (delivery=%s)", self._delivery is not None)

    async def close(self) -> None:
        """Gracefully shut down all services and connections.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        # Stop the cron jobs first, they drive the dispatcher
        if self._task_manager is not None:
            await self._task_manager.stop()
            self._task_manager = None

        if self._delivery is not None:
            await self._delivery.stop()
            self._delivery = None

        self._event_service = None
        self._notification_service = None
        self._ledger_service = None
        self._metrics = None

        if self._cache is not None:
            await self._cache.close()
            self._cache = None

        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

        self._initialized = False
        logger.info("NodeGaze engine closed")

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def datastore(self) -> Datastore:
        """Get the datastore instance.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._datastore is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._datastore

    @property
    def cache(self) -> CacheClient:
        """Get the cache client instance.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._cache is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._cache

    @property
    def event_service(self) -> EventService:
        """Get the event store service."""
        if self._event_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._event_service

    @property
    def notification_service(self) -> NotificationService:
        """Get the notification registry service."""
        if self._notification_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._notification_service

    @property
    def ledger_service(self) -> LedgerService:
        """Get the delivery ledger service."""
        if self._ledger_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._ledger_service

    @property
    def has_delivery(self) -> bool:
        """Whether a delivery dispatcher is configured and created."""
        return self._delivery is not None

    @property
    def delivery(self) -> DeliveryDispatcher:
        """Get the delivery dispatcher.

        Raises:
            RuntimeError: If delivery is disabled or the engine is not initialized.
        """
        if self._delivery is None:
            raise RuntimeError(
                _ERR_DELIVERY_DISABLED if self._initialized else _ERR_NOT_INITIALIZED
            )
        return self._delivery

    @property
    def metrics(self) -> EngineMetrics | None:
        """Get the engine metrics (None if not initialized)."""
        return self._metrics

    @property
    def task_manager(self) -> TaskManager | None:
        """Get the task manager (None if not enabled)."""
        return self._task_manager

    async def health_check(self) -> dict[str, str]:
        """Check health status of all engine components.

        Returns:
            Dictionary with component statuses ('ok', 'error', 'disabled',
            'not_initialized').
        """
        status = {
            "engine": "ok" if self._initialized else "not_initialized",
            "datastore": "unknown",
            "cache": "unknown",
            "delivery": "unknown",
        }

        if self._initialized:
            if self._datastore and await self._datastore.ping():
                status["datastore"] = "ok"
            else:
                status["datastore"] = "error"

            if self._cache and self._cache.is_connected:
                status["cache"] = "ok"
            else:
                status["cache"] = "error"

            if self._delivery is None:
                status["delivery"] = "disabled"
            elif self._delivery.is_running:
                status["delivery"] = "ok"
            else:
                status["delivery"] = "error"

        return status
