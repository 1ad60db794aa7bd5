"""Tests for the command line entry point."""

import pytest
from fastapi import FastAPI

from auditstream import cli
from auditstream.config import Settings


class TestParseArgs:
    """Tests for argument parsing."""

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_unset_options_are_none(self) -> None:
        """Options left out do not override environment settings."""
        args = cli._parse_args([])

        assert args.host is None
        assert args.port is None
        assert args.source is None
        assert args.log_level is None

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_all_options(self) -> None:
        """Every option is parsed into its settings field."""
        args = cli._parse_args(
            ["--host", "127.0.0.1", "--port", "9000", "--source", "replay", "--log-level", "debug", "--static-dir", "ui"]
        )

        assert args.host == "127.0.0.1"
        assert args.port == 9000
        assert args.source == "replay"
        assert args.log_level == "DEBUG"
        assert args.static_dir == "ui"

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_unknown_source_is_rejected(self) -> None:
        """--source only accepts known variants."""
        with pytest.raises(SystemExit):
            cli._parse_args(["--source", "etw"])


class TestMain:
    """Tests for main() wiring."""

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_build_app_returns_fastapi(self, tmp_path) -> None:
        """build_app wires a FastAPI application."""
        app = cli.build_app(Settings(source="replay", static_dir=str(tmp_path / "none")))

        assert isinstance(app, FastAPI)

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_main_serves_with_overrides(self, monkeypatch) -> None:
        """CLI options override the environment before serving."""
        served: dict[str, object] = {}

        def fake_run(app, host, port, log_config):
            served.update(app=app, host=host, port=port, log_config=log_config)

        monkeypatch.setenv("AUDITSTREAM_PORT", "7000")
        monkeypatch.setattr(cli.uvicorn, "run", fake_run)

        assert cli.main(["--source", "replay", "--host", "127.0.0.1"]) == 0
        assert served["host"] == "127.0.0.1"
        assert served["port"] == 7000
        assert served["log_config"] is None
        assert isinstance(served["app"], FastAPI)

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_main_rejects_bad_environment(self, monkeypatch) -> None:
        """Invalid environment settings exit with status 2."""
        monkeypatch.setenv("AUDITSTREAM_GRACE_INTERVAL", "later")

        assert cli.main(["--source", "replay"]) == 2
