"""
Common worker launcher: telemetry, logging, signal handling and lifecycle.
"""

import argparse
import asyncio
import logging
import signal
from typing import Optional, Callable

from common.core.otel_axiom_exporter import _initialize_telemetry, get_logger
from common.db.session import dispose_engine
from common.workers.base_worker import BaseWorker


class WorkerLauncher:
    """Runs a BaseWorker until SIGINT/SIGTERM, then shuts it down cleanly."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self.worker_instance: Optional[BaseWorker] = None

    def _setup_logging(self, level: str = "INFO"):
        logging.basicConfig(
            level=getattr(logging, level),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )

    def _register_signal_handlers(self, worker_instance: BaseWorker):
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(
                signum, lambda s=signum: self._on_signal(s, worker_instance)
            )

    def _on_signal(self, signum: int, worker_instance: BaseWorker) -> None:
        self.logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        asyncio.get_running_loop().create_task(worker_instance.stop())

    async def _run_worker_async(
        self, worker_instance: BaseWorker, worker_name: str, once: bool
    ):
        self.worker_instance = worker_instance
        try:
            if once:
                self.logger.info(f"Running a single {worker_name} tick...")
                await worker_instance.setup()
                try:
                    await worker_instance.tick()
                finally:
                    await worker_instance.cleanup()
            else:
                self._register_signal_handlers(worker_instance)
                self.logger.info(f"Starting {worker_name}...")
                await worker_instance.start()
        except Exception as e:
            self.logger.error(f"Worker failed with error: {e}", exc_info=True)
            raise
        finally:
            await dispose_engine()
            self.logger.info("Worker shutdown complete")

    def run(
        self,
        worker_factory: Callable[..., BaseWorker],
        worker_name: str,
        once: bool = False,
        log_level: str = "INFO",
        factory_kwargs: Optional[dict] = None,
    ):
        """
        Main entry point to run a worker.

        Args:
            worker_factory: Callable returning the worker instance
            worker_name: Human readable name for logging
            once: Run a single tick and exit (cron style)
            log_level: Root logging level
            factory_kwargs: Kwargs passed to worker_factory
        """
        _initialize_telemetry()
        self._setup_logging(log_level)
        self.logger.info(f"Configuring {worker_name}...")

        worker_instance = worker_factory(**(factory_kwargs or {}))
        asyncio.run(self._run_worker_async(worker_instance, worker_name, once))

    def run_with_cli(
        self,
        worker_factory: Callable[..., BaseWorker],
        worker_name: str,
        argv: Optional[list[str]] = None,
    ):
        """Parse --interval, --once and --log-level, then run."""
        parser = argparse.ArgumentParser(description=f"Run the {worker_name}")
        parser.add_argument(
            "--interval",
            type=float,
            default=None,
            help="Seconds between ticks (defaults to settings)",
        )
        parser.add_argument(
            "--once", action="store_true", help="Run a single tick and exit"
        )
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        )
        args = parser.parse_args(argv)

        factory_kwargs = {}
        if args.interval is not None:
            factory_kwargs["interval_seconds"] = args.interval

        self.run(
            worker_factory=worker_factory,
            worker_name=worker_name,
            once=args.once,
            log_level=args.log_level,
            factory_kwargs=factory_kwargs,
        )
