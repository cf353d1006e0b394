"""Tests for the CLI entry point (main.py)."""

from __future__ import annotations

import subprocess
import sys
from unittest.mock import AsyncMock, patch

import pytest

import main
from launch_agent.models import AutopsyReport, Signal, Strategy
from launch_agent.signal_store import MemorySignalStore


class TestCLI:

    def test_help_flag(self):
        """--help should print usage and exit 0."""
        result = subprocess.run(
            [sys.executable, "src/main.py", "--help"],
            capture_output=True, text=True, timeout=10,
        )
        assert result.returncode == 0
        assert "autopsy" in result.stdout
        assert "monitor" in result.stdout

    def test_missing_command(self):
        """Missing subcommand should exit with error."""
        result = subprocess.run(
            [sys.executable, "src/main.py"],
            capture_output=True, text=True, timeout=10,
        )
        assert result.returncode != 0
        assert "required" in result.stderr.lower() or "command" in result.stderr.lower()

    def test_autopsy_requires_mint(self):
        with pytest.raises(SystemExit) as exc:
            main.build_parser().parse_args(["autopsy"])
        assert exc.value.code != 0


class TestCommands:

    def test_monitor_refuses_bad_config(self):
        with patch.object(main, "validate_config", side_effect=main.ConfigurationError("bad")), \
                patch.object(main, "_monitor") as monitor:
            assert main.main(["monitor"]) == 2
        monitor.assert_not_called()

    def test_autopsy_json(self, capsys):
        report = AutopsyReport(mint="MINT", detected=True, reason="FARM (High): x", bundle_size=12)
        with patch.object(main, "run_autopsy", new=AsyncMock(return_value=report)), \
                patch.object(main, "close_clients", new=AsyncMock()):
            assert main.main(["autopsy", "--mint", "MINT", "--json"]) == 0
        out = capsys.readouterr().out
        assert '"detected": true' in out
        assert '"bundle_size": 12' in out

    def test_signals_listing(self, capsys):
        store = MemorySignalStore()
        store._signals.append(Signal(mint="MINT", strategy=Strategy.FARM, slot=1, buyer_count=13))
        with patch.object(main, "get_store", return_value=store), \
                patch.object(main, "close_clients", new=AsyncMock()):
            assert main.main(["signals"]) == 0
        out = capsys.readouterr().out
        assert "Total signals: 1" in out
        assert "FARM" in out
