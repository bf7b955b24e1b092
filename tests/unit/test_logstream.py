import asyncio
import json
import logging

import pytest

from fedsetup.contracts import LogEntry
from fedsetup.logstream import ServerLogger, ServerLogHandler


def test_buffer_is_bounded_and_newest_first():
    server_logger = ServerLogger(max_entries=3)

    for n in range(5):
        server_logger.log(LogEntry(metadata={"n": n}), "s1")

    recent = server_logger.get_recent_logs("s1")
    assert [entry.metadata["n"] for entry in recent] == [4, 3, 2]
    assert server_logger.get_recent_logs("s1", count=1)[0].metadata["n"] == 4
    assert server_logger.get_recent_logs("other") == []


@pytest.mark.asyncio
async def test_stream_replays_recent_then_live_entries():
    server_logger = ServerLogger()
    server_logger.log(LogEntry(metadata={"n": 1}), "s1")
    server_logger.log(LogEntry(metadata={"n": 2}), "s1")

    stream = server_logger.stream("s1")
    frames = [await stream.__anext__(), await stream.__anext__()]
    server_logger.log(LogEntry(level="error", metadata={"n": 3}), "s1")
    frames.append(await asyncio.wait_for(stream.__anext__(), timeout=1))

    payloads = [json.loads(frame[len("data: "):]) for frame in frames]
    assert all(frame.endswith("\n\n") for frame in frames)
    assert [payload["metadata"]["n"] for payload in payloads] == [1, 2, 3]
    assert payloads[2]["level"] == "error"

    assert server_logger.subscriber_count("s1") == 1
    await stream.aclose()
    assert server_logger.subscriber_count("s1") == 0


def test_log_handler_forwards_records():
    server_logger = ServerLogger()
    handler = ServerLogHandler(server_logger)
    log = logging.getLogger("fedsetup.tests.logstream")
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    try:
        log.warning("Check failed", extra={"category": "step", "provider": "google"})
    finally:
        log.removeHandler(handler)

    entry = server_logger.get_recent_logs()[0]
    assert entry.level == "warn"
    assert entry.category == "step"
    assert entry.provider == "google"
    assert entry.metadata["message"] == "Check failed"
