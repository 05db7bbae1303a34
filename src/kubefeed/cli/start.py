# src/kubefeed/cli/start.py
"""
Start command for the KubeFeed CLI.

Seeds the cluster state from history and checkpoints, starts the eviction
and pod watchers, then runs the periodic update and checkpoint garbage
collection passes until SIGINT or SIGTERM.
"""

import asyncio
import logging
import signal
import traceback

import typer
from typing_extensions import Annotated

from ..core.config import config
from ..core.factory import get_eviction_watcher, get_feeder, get_history_provider, get_pod_restart_watcher
from ..core.scheduler import Scheduler
from ..core.telemetry import initialize_telemetry

logger = logging.getLogger(__name__)

app = typer.Typer(name="start", help="Start the cluster state feeder.")


async def initialize_cluster_state(feeder) -> None:
    """Loads history (when a provider is configured) and then checkpoints."""
    provider = get_history_provider()
    if provider is not None:
        try:
            await feeder.init_from_history_provider(provider)
        finally:
            await provider.close()
    else:
        logger.info("No history provider configured; skipping history initialization.")

    await feeder.init_from_checkpoints()


async def _async_start(skip_history: bool = False) -> None:
    feeder = get_feeder()
    watchers = [get_eviction_watcher(), get_pod_restart_watcher()]
    scheduler = Scheduler()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _request_shutdown(sig_name: str):
        logger.info(f"Received {sig_name}, initiating graceful shutdown...")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown, sig.name)

    try:
        if skip_history:
            await feeder.init_from_checkpoints()
        else:
            await initialize_cluster_state(feeder)

        for watcher in watchers:
            watcher.start()
        scheduler.add_job_from_string(feeder.run_update_cycle, config.UPDATE_INTERVAL, name="update_cycle")
        scheduler.add_job_from_string(
            feeder.garbage_collect_checkpoints, config.CHECKPOINT_GC_INTERVAL, name="checkpoint_gc"
        )

        logger.info("KubeFeed is running. Press CTRL+C to exit.")
        await stop_event.wait()
    finally:
        await scheduler.stop()
        for watcher in watchers:
            await watcher.stop()
        await feeder.close()
        logger.info("Shutting down KubeFeed service gracefully.")


@app.callback(invoke_without_command=True)
def start(
    ctx: typer.Context,
    skip_history: Annotated[
        bool,
        typer.Option("--skip-history", help="Do not seed the cluster state from the history provider."),
    ] = False,
    telemetry: Annotated[
        bool,
        typer.Option("--telemetry/--no-telemetry", help="Export traces and metrics over OTLP/HTTP."),
    ] = False,
) -> None:
    """
    Start the feeder loop.
    """
    if ctx.invoked_subcommand is not None:
        return

    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logger.info("Initializing KubeFeed...")

    if telemetry:
        initialize_telemetry()

    try:
        asyncio.run(_async_start(skip_history=skip_history))
    except KeyboardInterrupt:
        logger.info("Shutting down KubeFeed service.")
        raise typer.Exit()
    except Exception as e:
        logger.error(f"An unexpected error occurred during startup: {e}")
        logger.error("Startup failed: %s", traceback.format_exc())
        raise typer.Exit(code=1)
