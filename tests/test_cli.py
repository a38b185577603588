"""
Tests for the run_arb.py command line entry point.
"""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import run_arb

CONFIG = str(Path(__file__).resolve().parents[1] / "configs" / "avax_wavax_usdc.yaml")


def test_parse_args_defaults():
    args = run_arb.parse_args([])
    assert args.config == "configs/avax_wavax_usdc.yaml"
    assert not args.once and not args.analyze and not args.debug


def test_missing_config_exits_with_error():
    assert run_arb.main(["--config", "/nonexistent/config.yaml", "--quiet"]) == 1


def test_once_runs_single_cycle():
    with patch.object(run_arb, "ArbRunner") as runner_cls:
        runner = runner_cls.return_value
        runner.build = AsyncMock()
        runner.run_once = AsyncMock()
        runner.run = AsyncMock()

        assert run_arb.main(["--config", CONFIG, "--once"]) == 0

    runner.connect.assert_called_once()
    runner.build.assert_awaited_once()
    runner.run_once.assert_awaited_once()
    runner.run.assert_not_awaited()


def test_runner_failure_exits_with_error():
    with patch.object(run_arb, "ArbRunner") as runner_cls:
        runner_cls.return_value.connect.side_effect = RuntimeError("no rpc")
        assert run_arb.main(["--config", CONFIG, "--analyze"]) == 1
