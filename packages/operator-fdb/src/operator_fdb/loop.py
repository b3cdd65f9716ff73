"""
ReconcileLoop daemon for periodic resync.

This module implements the long-running loop that:
- Lists FoundationDBCluster (and FoundationDBBackup) objects in a namespace
- Reconciles each one, several clusters concurrently
- Sleeps until the next resync, or sooner when a step asked for a requeue
- Handles graceful shutdown on SIGINT/SIGTERM

Pattern: Daemon Loop with Signal Handling
- Uses asyncio.Event for shutdown coordination
- Registers signal handlers inside run() with get_running_loop()
- Uses wait_for with timeout for interruptible sleep
"""

import asyncio
import functools
import logging
import signal

from operator_fdb.clients.platform import PlatformClient
from operator_fdb.cluster import FoundationDBBackup, FoundationDBCluster
from operator_fdb.config import OperatorSettings
from operator_fdb.reconcile.backup import BackupReconciler
from operator_fdb.reconcile.pipeline import Reconciler
from operator_fdb.reconcile.types import ReconcileResult

logger = logging.getLogger(__name__)

MIN_REQUEUE_SECONDS = 1.0


class ReconcileLoop:
    """
    Long-running daemon that reconciles every cluster in a namespace.

    Distinct clusters share no mutable state, so they are reconciled
    concurrently, bounded by settings.max_concurrent_reconciles.

    Example:
        loop = ReconcileLoop(reconciler, platform, settings)
        await loop.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        reconciler: Reconciler,
        platform: PlatformClient,
        settings: OperatorSettings,
        cluster_name: str | None = None,
        backup_reconciler: BackupReconciler | None = None,
    ) -> None:
        """
        Initialize the reconcile loop.

        Args:
            reconciler: Cluster pipeline
            platform: Platform client used to list clusters and backups
            settings: Namespace, resync interval and concurrency limit
            cluster_name: Reconcile only this cluster (no backups)
            backup_reconciler: Also reconcile backups when given
        """
        self.reconciler = reconciler
        self.platform = platform
        self.settings = settings
        self.cluster_name = cluster_name
        self.backup_reconciler = backup_reconciler
        self._shutdown = asyncio.Event()
        self._semaphore = asyncio.Semaphore(settings.max_concurrent_reconciles)
        self._passes = 0

    async def run(self) -> None:
        """Reconcile until a shutdown signal arrives."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))

        logger.info(
            "Reconcile loop starting (namespace: %s, interval: %ss)",
            self.settings.namespace, self.settings.resync_interval_seconds,
        )

        while not self._shutdown.is_set():
            results = await self.run_once()
            delay = self.next_delay(results)
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass  # Normal timeout, run the next pass

        logger.info("Reconcile loop stopped after %d passes", self._passes)

    def stop(self) -> None:
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down...", sig.name)
        self._shutdown.set()

    async def run_once(self) -> list[ReconcileResult]:
        """Reconcile every target once and return the per-object results."""
        self._passes += 1
        namespace = self.settings.namespace

        try:
            cluster_names = await self._cluster_names()
            backup_names = await self._backup_names()
        except Exception as e:
            # Log but don't crash; the next pass lists again
            logger.error("Failed to list resources in %s: %s", namespace, e)
            return []

        tasks = [self._bounded(self.reconciler.reconcile, namespace, name) for name in cluster_names]
        if self.backup_reconciler is not None:
            tasks += [
                self._bounded(self.backup_reconciler.reconcile, namespace, name)
                for name in backup_names
            ]
        results = list(await asyncio.gather(*tasks))

        for result in results:
            if result.error:
                logger.warning("%s/%s failed: %s", result.namespace, result.name, result.error)
        return results

    def next_delay(self, results: list[ReconcileResult]) -> float:
        """Shortest requested requeue, capped by the resync interval."""
        interval = self.settings.resync_interval_seconds
        requeues = [
            r.requeue_after for r in results if not r.completed and r.requeue_after is not None
        ]
        if not requeues:
            return interval
        return min(max(min(requeues), MIN_REQUEUE_SECONDS), interval)

    async def _bounded(self, reconcile, namespace: str, name: str) -> ReconcileResult:
        async with self._semaphore:
            try:
                return await reconcile(namespace, name)
            except Exception as e:
                # One object failing must not end the pass for the others
                logger.error("Reconcile of %s/%s raised: %s", namespace, name, e)
                return ReconcileResult(namespace=namespace, name=name, completed=False, error=str(e))

    async def _cluster_names(self) -> list[str]:
        if self.cluster_name:
            return [self.cluster_name]
        clusters = await self.platform.list_objects(FoundationDBCluster, self.settings.namespace)
        return [cluster.name for cluster in clusters]

    async def _backup_names(self) -> list[str]:
        if self.backup_reconciler is None or self.cluster_name:
            return []
        backups = await self.platform.list_objects(FoundationDBBackup, self.settings.namespace)
        return [backup.name for backup in backups]
