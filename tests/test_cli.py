"""Tests for the bluesky_stream command line entry point."""

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

import bluesky_stream
from bsky_stream.config import StreamConfig
from bsky_stream.errors import AuthError
from bsky_stream.logger import setup_logger
from bsky_stream.offsets import OffsetStore
from bsky_stream.sinks import CSVSink, JSONLinesSink
from bsky_stream.source.task import BlueskySourceTask
from tests.fake_bluesky import FakeBluesky, make_post_data
from tests.mock_sink import MockSink

T1 = "2024-09-30T19:40:02.943Z"
T2 = "2024-09-30T19:41:15.001Z"


class TestGetSink:
    def test_csv_default(self):
        sink = bluesky_stream.get_sink("csv", None)
        assert isinstance(sink, CSVSink)
        assert sink.filename == "bluesky_posts.csv"

    def test_jsonl_stdout(self):
        sink = bluesky_stream.get_sink("jsonl", None)
        assert isinstance(sink, JSONLinesSink)
        assert sink.filename == "-"


class TestRun:
    @patch("bluesky_stream.time.sleep")
    def test_writes_and_commits(self, mock_sleep, tmp_path):
        fake = FakeBluesky([[make_post_data(T2), make_post_data(T1)]])
        config = StreamConfig(identity="alice.bsky.social", password="app-pass")
        store = OffsetStore(str(tmp_path / "offsets.json"))
        sink = MockSink()
        task = BlueskySourceTask()
        task.start(config, store, http_client=fake.client())
        try:
            task.fetcher.poll_once()
            written = bluesky_stream.run(task, sink, store, max_polls=2)
        finally:
            task.stop()

        assert written == 2
        assert [r.created_at for r in sink.records] == [T1, T2]
        assert store.get_offset(None) == {"createdAt": T2}
        assert mock_sleep.call_count == 2


class TestMain:
    def test_invalid_config_exit_code(self, monkeypatch):
        monkeypatch.setattr("bsky_stream.config.load_dotenv", lambda: False)
        monkeypatch.delenv("BLUESKY_HANDLE", raising=False)
        monkeypatch.delenv("BLUESKY_PASSWORD", raising=False)

        assert bluesky_stream.main([]) == 2

    @patch("bluesky_stream.BlueskySourceTask")
    def test_login_failure_exit_code(self, mock_task_cls, monkeypatch, tmp_path):
        monkeypatch.setattr("bsky_stream.config.load_dotenv", lambda: False)
        monkeypatch.setenv("BLUESKY_HANDLE", "alice.bsky.social")
        monkeypatch.setenv("BLUESKY_PASSWORD", "app-pass")
        mock_task_cls.return_value.start.side_effect = AuthError("rejected")

        exit_code = bluesky_stream.main(["--state-file", str(tmp_path / "o.json")])

        assert exit_code == 1

    @patch("bluesky_stream.run")
    @patch("bluesky_stream.BlueskySourceTask")
    def test_session_lost_stops_task(self, mock_task_cls, mock_run, monkeypatch, tmp_path):
        monkeypatch.setattr("bsky_stream.config.load_dotenv", lambda: False)
        monkeypatch.setenv("BLUESKY_HANDLE", "alice.bsky.social")
        monkeypatch.setenv("BLUESKY_PASSWORD", "app-pass")
        mock_run.side_effect = AuthError("refresh failed")
        task = MagicMock()
        mock_task_cls.return_value = task

        exit_code = bluesky_stream.main([
            "--state-file", str(tmp_path / "o.json"),
            "--output", str(tmp_path / "posts.csv"),
        ])

        assert exit_code == 1
        task.stop.assert_called_once()

    @patch("bluesky_stream.run")
    @patch("bluesky_stream.BlueskySourceTask")
    def test_from_start_clears_offset(self, mock_task_cls, mock_run, monkeypatch, tmp_path):
        monkeypatch.setattr("bsky_stream.config.load_dotenv", lambda: False)
        monkeypatch.setenv("BLUESKY_HANDLE", "alice.bsky.social")
        monkeypatch.setenv("BLUESKY_PASSWORD", "app-pass")
        state_file = str(tmp_path / "o.json")
        fake = FakeBluesky([[make_post_data(T1)]])
        task = BlueskySourceTask()
        task.start(StreamConfig(identity="a.bsky.social", password="p"), http_client=fake.client())
        task.fetcher.poll_once()
        OffsetStore(state_file).commit(task.poll())
        task.stop()

        exit_code = bluesky_stream.main(["--state-file", state_file, "--from-start", "-q", "phd"])

        assert exit_code == 0
        assert OffsetStore(state_file).get_offset(None) is None
        config = mock_task_cls.return_value.start.call_args.args[0]
        assert config.search_term == "phd"


@pytest.fixture
def log_stream(capsys):
    """Send log lines to the captured stdout, restoring the handler afterwards."""
    handler = setup_logger().handlers[0]
    previous = handler.stream
    handler.setStream(sys.stdout)
    yield handler
    handler.setStream(previous)


class TestJSONLinesStdout:
    def test_stdout_holds_only_records(self, capsys, log_stream, monkeypatch, tmp_path):
        monkeypatch.setattr("bsky_stream.config.load_dotenv", lambda: False)
        monkeypatch.setenv("BLUESKY_HANDLE", "alice.bsky.social")
        monkeypatch.setenv("BLUESKY_PASSWORD", "app-pass")
        fake = FakeBluesky([[make_post_data(T2), make_post_data(T1)]])
        task = BlueskySourceTask()
        start = task.start

        def start_with_fake(config, offset_store=None):
            start(config, offset_store, http_client=fake.client())
            task.fetcher.poll_once()

        monkeypatch.setattr(task, "start", start_with_fake)
        monkeypatch.setattr("bluesky_stream.BlueskySourceTask", lambda: task)
        run = bluesky_stream.run
        monkeypatch.setattr(
            "bluesky_stream.run",
            lambda *args, **kwargs: run(*args, drain_interval=0, max_polls=1),
        )

        exit_code = bluesky_stream.main([
            "--sink", "jsonl",
            "--state-file", str(tmp_path / "o.json"),
        ])

        captured = capsys.readouterr()
        assert exit_code == 0
        lines = captured.out.splitlines()
        assert [json.loads(line)["offset"]["createdAt"] for line in lines] == [T1, T2]
        assert "Wrote 2 records" in captured.err

    def test_file_output_keeps_logs_on_stdout(self, capsys, log_stream, monkeypatch, tmp_path):
        monkeypatch.setattr("bsky_stream.config.load_dotenv", lambda: False)
        monkeypatch.delenv("BLUESKY_HANDLE", raising=False)
        monkeypatch.delenv("BLUESKY_PASSWORD", raising=False)

        bluesky_stream.main(["--sink", "jsonl", "-o", str(tmp_path / "posts.jsonl")])

        assert log_stream.stream is sys.stdout
        assert "Invalid configuration" in capsys.readouterr().out
