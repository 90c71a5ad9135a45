"""Unit tests for the cache operator CLI."""

import json

import pytest

from src.__main__ import build_parser, main


@pytest.fixture
def local_only(monkeypatch):
    """Run the CLI against the local fallback only."""
    monkeypatch.setenv("CACHE_REDIS_ENABLED", "false")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("TAKARO_USERNAME", raising=False)
    monkeypatch.delenv("TAKARO_PASSWORD", raising=False)


class TestParser:
    def test_invalidate_requires_pattern(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["invalidate"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    def test_stats(self, local_only, capsys):
        assert main(["stats"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["backend"] == "memory"
        assert output["connected"] is False
        assert output["keys"] == 0

    def test_invalidate(self, local_only, capsys):
        assert main(["invalidate", "takaro:players:*"]) == 0

        assert "Deleted 0 key(s)" in capsys.readouterr().out

    def test_invalid_config(self, local_only, monkeypatch, capsys):
        monkeypatch.setenv("TAKARO_PAGE_SIZE", "0")

        assert main(["stats"]) == 2
        assert "설정 오류" in capsys.readouterr().err
