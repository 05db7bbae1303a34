# tests/cli/test_start.py

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import typer
from typer.testing import CliRunner

from kubefeed import __version__
from kubefeed.cli import app
from kubefeed.cli.start import initialize_cluster_state, start

runner = CliRunner()


def test_version_command():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_start_initializes_async_loop():
    """start() hands control to asyncio.run with the async entry point."""
    mock_ctx = MagicMock()
    mock_ctx.invoked_subcommand = None

    with (
        patch("kubefeed.cli.start.asyncio.run") as mock_run,
        patch("kubefeed.cli.start._async_start", new_callable=MagicMock) as mock_async_start,
        patch("kubefeed.cli.start.initialize_telemetry") as mock_telemetry,
    ):
        start(mock_ctx, skip_history=True, telemetry=False)

    mock_async_start.assert_called_once_with(skip_history=True)
    mock_run.assert_called_once_with(mock_async_start.return_value)
    mock_telemetry.assert_not_called()


def test_start_exits_with_error_on_startup_failure():
    mock_ctx = MagicMock()
    mock_ctx.invoked_subcommand = None

    with (
        patch("kubefeed.cli.start.asyncio.run", side_effect=RuntimeError("no kubeconfig")),
        patch("kubefeed.cli.start._async_start", new_callable=MagicMock),
    ):
        with pytest.raises(typer.Exit) as exc_info:
            start(mock_ctx, skip_history=False, telemetry=False)

    assert exc_info.value.exit_code == 1


@pytest.mark.asyncio
async def test_initialize_cluster_state_loads_history_then_checkpoints():
    order = []
    feeder = MagicMock()
    feeder.init_from_history_provider = AsyncMock(side_effect=lambda provider: order.append("history"))
    feeder.init_from_checkpoints = AsyncMock(side_effect=lambda: order.append("checkpoints"))
    provider = MagicMock(close=AsyncMock())

    with patch("kubefeed.cli.start.get_history_provider", return_value=provider):
        await initialize_cluster_state(feeder)

    assert order == ["history", "checkpoints"]
    feeder.init_from_history_provider.assert_awaited_once_with(provider)
    provider.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_initialize_cluster_state_without_provider_loads_checkpoints_only():
    feeder = MagicMock()
    feeder.init_from_history_provider = AsyncMock()
    feeder.init_from_checkpoints = AsyncMock(return_value=0)

    with patch("kubefeed.cli.start.get_history_provider", return_value=None):
        await initialize_cluster_state(feeder)

    feeder.init_from_history_provider.assert_not_awaited()
    feeder.init_from_checkpoints.assert_awaited_once()
