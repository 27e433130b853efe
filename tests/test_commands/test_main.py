"""Tests for nus_tools.__main__ module."""

import json
import re

from click.testing import CliRunner

from nus_tools.__main__ import main


class TestMainCLI:
    """Tests for main CLI functionality."""

    def test_main_help(self) -> None:
        """Test main command help output."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Python tools for verifying encrypted title packages" in result.output
        assert "titlekey" in result.output
        assert "verify" in result.output

    def test_version_command(self) -> None:
        """Test version command."""
        runner = CliRunner()
        result = runner.invoke(main, ["version"])
        assert result.exit_code == 0
        clean_output = re.sub(r'\x1b\[[0-9;]*m', '', result.output)
        assert "nus-tools 0.1.0" in clean_output

    def test_version_json(self) -> None:
        """Test version command with JSON output."""
        runner = CliRunner()
        result = runner.invoke(main, ["-o", "json", "version"])
        assert result.exit_code == 0
        info = json.loads(result.stdout)
        assert info["name"] == "nus-tools"
        assert info["version"] == "0.1.0"

    def test_version_option(self) -> None:
        """Test --version option."""
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_verbose_flag(self) -> None:
        """Test verbose flag is accepted."""
        runner = CliRunner()
        result = runner.invoke(main, ["--verbose", "version"])
        assert result.exit_code == 0
        assert "Python" in result.output

    def test_debug_flag(self) -> None:
        """Test debug flag is accepted."""
        runner = CliRunner()
        result = runner.invoke(main, ["--debug", "version"])
        assert result.exit_code == 0

    def test_bad_config_file(self, temp_dir) -> None:
        """Test an unreadable configuration exits non-zero."""
        path = temp_dir / "config.json"
        path.write_text("{not json")

        runner = CliRunner()
        result = runner.invoke(main, ["-c", str(path), "version"])
        assert result.exit_code == 1
