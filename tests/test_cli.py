"""
Tests for the cachecell CLI.

The configured client is replaced by a shared InMemoryClient so commands
can be chained against the same store.
"""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from cachecell import __version__
from cachecell.cell import Blob
from cachecell.cli import app
from cachecell.client import InMemoryClient

runner = CliRunner()


@pytest.fixture
def store():
    client = InMemoryClient()
    with patch("cachecell.cli.utils.make_client", return_value=client):
        yield client


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "get" in result.output


class TestValues:
    def test_set_and_get(self, store):
        result = runner.invoke(app, ["set", "greeting", "hello"])
        assert result.exit_code == 0
        assert store.get("greeting") == "hello"
        result = runner.invoke(app, ["get", "greeting"])
        assert result.exit_code == 0
        assert "'hello'" in result.output

    def test_set_json(self, store):
        result = runner.invoke(app, ["set", "jobs", '["a", 1]', "--json"])
        assert result.exit_code == 0
        assert store.get("jobs") == ["a", 1]

    def test_set_invalid_json(self, store):
        result = runner.invoke(app, ["set", "jobs", "[oops", "--json"])
        assert result.exit_code == 1

    def test_get_json(self, store):
        store.set("data", {"a": [1, 2]})
        result = runner.invoke(app, ["get", "data", "--json"])
        assert result.exit_code == 0
        assert '"a"' in result.output

    def test_get_missing(self, store):
        result = runner.invoke(app, ["get", "nothing"])
        assert result.exit_code == 0
        assert "None" in result.output

    def test_set_with_ttl(self, store):
        with patch("cachecell.cli.app.Blob") as blob_cls:
            blob_cls.return_value.set.return_value = "v"
            result = runner.invoke(app, ["set", "k", "v", "--ttl", "30"])
        assert result.exit_code == 0
        assert blob_cls.return_value.expiry == 30

    def test_reset(self, store):
        store.set("k", [1])
        result = runner.invoke(app, ["reset", "k"])
        assert result.exit_code == 0
        assert store.get("k") is None


class TestCounters:
    def test_counter_set_incr_decr(self, store):
        assert runner.invoke(app, ["set", "hits", "5", "--counter"]).exit_code == 0
        result = runner.invoke(app, ["incr", "hits", "3"])
        assert result.exit_code == 0
        assert "8" in result.output
        result = runner.invoke(app, ["decr", "hits", "100"])
        assert "0" in result.output
        assert store.get("hits", raw=True) == "0"

    def test_counter_rejects_text(self, store):
        result = runner.invoke(app, ["set", "hits", "abc", "--counter"])
        assert result.exit_code == 1

    def test_incr_missing(self, store):
        result = runner.invoke(app, ["incr", "missing"])
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_get_counter(self, store):
        store.set("hits", 4, raw=True)
        result = runner.invoke(app, ["get", "hits", "--counter"])
        assert result.output.strip() == "4"


class TestLocks:
    def test_lock_holder(self, store):
        cell = Blob(store, "queue")
        cell.lock()
        result = runner.invoke(app, ["lock-holder", "queue"])
        assert result.exit_code == 0
        assert "locked by" in result.output

    def test_not_locked(self, store):
        result = runner.invoke(app, ["lock-holder", "queue"])
        assert "is not locked" in result.output

    def test_break_lock(self, store):
        cell = Blob(store, "queue")
        cell.lock()
        result = runner.invoke(app, ["break-lock", "queue", "--yes"])
        assert result.exit_code == 0
        assert store.get("queue-lock") is None

    def test_break_lock_aborted(self, store):
        Blob(store, "queue").lock()
        result = runner.invoke(app, ["break-lock", "queue"], input="n\n")
        assert result.exit_code != 0
        assert store.get("queue-lock") is not None


class TestConfigCommand:
    def test_shows_settings(self, monkeypatch):
        monkeypatch.setenv("CACHECELL_BACKEND", "redis")
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert '"redis"' in result.output
