"""Tests for the CSV and JSON Lines sinks."""

import csv
import json
import os
import tempfile

from bsky_stream.api.base import Author, Post
from bsky_stream.config import StreamConfig
from bsky_stream.sinks import CSVSink, JSONLinesSink
from bsky_stream.source.records import RecordFactory
from tests.mock_sink import MockSink


def make_record(n=1, langs=("en",), display_name="Alice"):
    """Helper to create a source record."""
    post = Post(
        author=Author(handle="alice.bsky.social", display_name=display_name),
        uri=f"at://did:plc:alice/app.bsky.feed.post/{n}",
        cid=f"bafy{n}",
        created_at=f"2024-09-30T19:40:0{n}.000Z",
        text=f"PhD position {n}",
        langs=langs,
    )
    config = StreamConfig(identity="alice.bsky.social", password="app-pass", topic="phd")
    return RecordFactory(config).create_record(post)


class TestCSVSink:
    def setup_method(self):
        self.tmpfile = tempfile.NamedTemporaryFile(
            mode="w", suffix=".csv", delete=False, newline=""
        )
        self.tmpfile.close()
        self.sink = CSVSink(self.tmpfile.name)

    def teardown_method(self):
        os.unlink(self.tmpfile.name)

    def read_rows(self):
        with open(self.tmpfile.name, "r", encoding="utf-8") as f:
            return list(csv.DictReader(f))

    def test_write_rows(self):
        assert self.sink.write([make_record(1), make_record(2)]) == 2

        rows = self.read_rows()
        assert len(rows) == 2
        assert rows[0]["uri"] == "at://did:plc:alice/app.bsky.feed.post/1"
        assert rows[0]["topic"] == "phd"
        assert rows[0]["displayName"] == "Alice"
        assert rows[1]["createdAt"] == "2024-09-30T19:40:02.000Z"

    def test_langs_json_serialized(self):
        self.sink.write([make_record(langs=("en", "de"))])
        assert json.loads(self.read_rows()[0]["langs"]) == ["en", "de"]

    def test_missing_optional_fields_blank(self):
        self.sink.write([make_record(display_name=None)])
        assert self.read_rows()[0]["displayName"] == ""

    def test_appends_with_single_header(self):
        self.sink.write([make_record(1)])
        self.sink.write([make_record(2)])

        rows = self.read_rows()
        assert [r["cid"] for r in rows] == ["bafy1", "bafy2"]

    def test_write_nothing(self):
        assert self.sink.write([]) == 0


class TestJSONLinesSink:
    def test_writes_one_object_per_line(self, tmp_path):
        path = tmp_path / "posts.jsonl"
        sink = JSONLinesSink(str(path))

        assert sink.write([make_record(1), make_record(2)]) == 2

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["topic"] == "phd"
        assert first["partition"] is None
        assert first["offset"] == {"createdAt": "2024-09-30T19:40:01.000Z"}
        assert first["value"]["id"]["cid"] == "bafy1"

    def test_stdout(self, capsys):
        JSONLinesSink("-").write([make_record(1)])

        out = capsys.readouterr().out
        assert json.loads(out.strip())["value"]["text"] == "PhD position 1"

    def test_write_nothing(self, tmp_path):
        path = tmp_path / "posts.jsonl"
        assert JSONLinesSink(str(path)).write([]) == 0
        assert not path.exists()


class TestMockSink:
    def test_collects_records(self):
        sink = MockSink()
        sink.write([make_record(1)])
        sink.write([make_record(2)])

        assert sink.get_uris() == [
            "at://did:plc:alice/app.bsky.feed.post/1",
            "at://did:plc:alice/app.bsky.feed.post/2",
        ]
