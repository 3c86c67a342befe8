# src/quickpay_logging/tests/test_logging/test_queue_logging.py
import json
import logging
import queue
from pathlib import Path

from quickpay_logging.config.settings import Settings
from quickpay_logging.core.correlation import TransactionContext, store
from quickpay_logging.core.logging.builder import (
    NonBlockingQueueHandler,
    get_queue_stats,
    setup_logging,
    stop_queue_logging,
)


def make_test_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        LOG_LEVEL="DEBUG",
        LOG_TO_STDOUT=False,     # write to files, not stdout
        LOG_DIR=tmp_path,
        LOG_MAX_BYTES=1_000_000,
        LOG_BACKUP_COUNT=1,
        LOG_USE_QUEUE=True,      # enable queue for the test
    )
    values.update(overrides)
    return Settings(**values)


def read_records(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_queue_listener_writes_file(tmp_path):
    settings = make_test_settings(tmp_path)
    setup_logging(settings)
    assert get_queue_stats()["queue_present"] is True

    logger = logging.getLogger("test.queue")
    store.bind(TransactionContext.of("txn_1700000000000_queue1", "payments-api"))

    for i in range(10):
        logger.info("test message %d", i, extra={"iteration": i})

    # Stop and flush the queue listener so every record is written
    stop_queue_logging()
    assert get_queue_stats()["queue_present"] is False

    records = read_records(Path(settings.LOG_DIR) / "app.log")
    messages = [r["message"] for r in records if r["log"]["logger"] == "test.queue"]
    assert messages == [f"test message {i}" for i in range(10)]

    first = next(r for r in records if r["message"] == "test message 0")
    # the binding lives in the producer's context; the listener thread only sees the stamped copy
    assert first["correlation"]["id"] == "txn_1700000000000_queue1"
    assert first["labels"]["iteration"] == "0"


def test_queue_masks_in_producer_context(tmp_path):
    settings = make_test_settings(tmp_path)
    setup_logging(settings)

    logging.getLogger("test.queue").info("auth with %s", "token=abc123", extra={"password": "hunter2222"})
    stop_queue_logging()

    text = (Path(settings.LOG_DIR) / "app.log").read_text(encoding="utf-8")
    assert "abc123" not in text
    assert "hunter2222" not in text
    assert "hu******22" in text


def test_non_blocking_handler_drops_when_full():
    q: queue.Queue = queue.Queue(1)
    handler = NonBlockingQueueHandler(q, drop_warning_threshold=0)
    before = get_queue_stats()["dropped_logs"]

    for i in range(3):
        handler.emit(logging.LogRecord("test", logging.INFO, __file__, 1, "msg %d", (i,), None))

    assert q.qsize() == 1
    assert get_queue_stats()["dropped_logs"] == before + 2


def test_stop_queue_logging_without_listener_is_safe():
    stop_queue_logging()
    stop_queue_logging()
