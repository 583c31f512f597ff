# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Unit tests for log aggregation.
"""
import threading
from datetime import datetime, timezone
from m2c.MANAGERS.log_aggregator import LogAggregator, parse_docker_timestamp
from m2c.MODELS.container import ContainerInfo

DB = ContainerInfo(id="c-db", service_name="db", running=True)
SHOP = ContainerInfo(id="c-shop", service_name="shop", running=True)


class ScriptedStreams:
    """Stream factory serving successive scripted batches per container."""

    def __init__(self, batches):
        self.batches = {cid: list(lines) for cid, lines in batches.items()}
        self.requests = []

    def __call__(self, container, since):
        self.requests.append((container.id, since))
        queue = self.batches.get(container.id, [])
        return queue.pop(0) if queue else []


def ts(second, fraction="000000000"):
    return f"2024-05-01T10:00:{second:02d}.{fraction}Z"


class TestParseDockerTimestamp:
    """Tests for parse_docker_timestamp."""

    def test_nanoseconds_truncated(self):
        """Test that nanosecond fractions are truncated to microseconds."""
        parsed = parse_docker_timestamp("2024-05-01T10:00:01.123456789Z")
        assert parsed == datetime(2024, 5, 1, 10, 0, 1, 123456, tzinfo=timezone.utc)

    def test_short_fraction_and_offset(self):
        """Test trimmed fractions and explicit offsets."""
        parsed = parse_docker_timestamp("2024-05-01T12:00:01.5+02:00")
        assert parsed == datetime(2024, 5, 1, 10, 0, 1, 500000, tzinfo=timezone.utc)

    def test_not_a_timestamp(self):
        """Test that arbitrary text is rejected."""
        assert parse_docker_timestamp("hello") is None


class TestLogAggregator:
    """Tests for LogAggregator."""

    def test_delivers_lines(self):
        """Test that captured lines reach a listener."""
        streams = ScriptedStreams({"c-db": [[f"{ts(1)} ready\n", f"{ts(2)} accepting\n"]]})
        aggregator = LogAggregator(stream_factory=streams)
        events = []
        aggregator.register_log_listener(events.append, [DB])
        aggregator.join(5)
        assert [e.message for e in events] == ["ready", "accepting"]
        assert events[0].service == "db"
        assert events[0].container_id == "c-db"
        assert streams.requests == [("c-db", None)]

    def test_resume_does_not_redeliver(self):
        """Test that a resumed capture skips lines up to the high-water mark."""
        streams = ScriptedStreams({"c-db": [
            [f"{ts(1)} one", f"{ts(2)} two"],
            [f"{ts(1)} one", f"{ts(2)} two", f"{ts(3)} three"],
        ]})
        aggregator = LogAggregator(stream_factory=streams)
        events = []
        aggregator.register_log_listener(events.append, [])
        start = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)

        aggregator.ensure_capturing_logs(start, [DB])
        aggregator.join(5)
        aggregator.ensure_capturing_logs(start, [DB])
        aggregator.join(5)

        assert [e.message for e in events] == ["one", "two", "three"]
        assert streams.requests[0] == ("c-db", start)
        assert streams.requests[1] == ("c-db", parse_docker_timestamp(ts(2)))

    def test_same_timestamp_distinct_lines(self):
        """Test that distinct lines sharing a timestamp are all delivered once."""
        streams = ScriptedStreams({"c-db": [
            [f"{ts(1)} a", f"{ts(1)} b"],
            [f"{ts(1)} a", f"{ts(1)} b", f"{ts(1)} c"],
        ]})
        aggregator = LogAggregator(stream_factory=streams)
        aggregator.ensure_capturing_logs(None, [DB])
        aggregator.join(5)
        aggregator.ensure_capturing_logs(None, [DB])
        aggregator.join(5)
        assert [e.message for e in aggregator.get_history()] == ["a", "b", "c"]

    def test_late_listener_gets_history(self):
        """Test that listeners registered at different times see the same history."""
        streams = ScriptedStreams({
            "c-db": [[f"{ts(1)} db up"], [f"{ts(1)} db up", f"{ts(4)} db query"]],
            "c-shop": [[f"{ts(2)} shop up"]],
        })
        aggregator = LogAggregator(stream_factory=streams)
        first, second = [], []
        aggregator.register_log_listener(first.append, [DB])
        aggregator.join(5)
        aggregator.register_log_listener(second.append, [DB, SHOP])
        aggregator.join(5)

        assert first[0].message == "db up"
        assert sorted(e.message for e in first) == ["db query", "db up", "shop up"]
        assert first == second

    def test_running_capture_not_restarted(self):
        """Test that a live capture is not started twice."""
        release = threading.Event()
        calls = []

        def blocking_stream(container, since):
            calls.append(container.id)
            yield f"{ts(1)} started"
            release.wait(5)

        aggregator = LogAggregator(stream_factory=blocking_stream)
        aggregator.ensure_capturing_logs(None, [DB])
        aggregator.ensure_capturing_logs(None, [DB, None])
        assert aggregator.is_capturing()
        release.set()
        aggregator.join(5)
        assert calls == ["c-db"]
        assert not aggregator.is_capturing()

    def test_failing_listener_does_not_block_others(self):
        """Test that a raising listener is isolated."""
        streams = ScriptedStreams({"c-db": [[f"{ts(1)} hello"]]})
        aggregator = LogAggregator(stream_factory=streams)
        received = []

        def broken(event):
            raise RuntimeError("boom")

        aggregator.register_log_listener(broken, [])
        aggregator.register_log_listener(received.append, [DB])
        aggregator.join(5)
        assert [e.message for e in received] == ["hello"]

    def test_untimestamped_lines(self):
        """Test that lines without timestamp are still delivered."""
        streams = ScriptedStreams({"c-db": [["plain line\n", "\n"]]})
        aggregator = LogAggregator(stream_factory=streams)
        aggregator.ensure_capturing_logs(None, [DB])
        aggregator.join(5)
        history = aggregator.get_history()
        assert [e.message for e in history] == ["plain line"]
        assert history[0].timestamp is None

    def test_stream_error_ends_capture(self):
        """Test that a failing stream only ends its own capture."""
        def failing(container, since):
            raise OSError("docker not found")

        aggregator = LogAggregator(stream_factory=failing)
        aggregator.ensure_capturing_logs(None, [DB])
        aggregator.join(5)
        assert aggregator.get_history() == []
