"""Tests for the background writer."""

from __future__ import annotations

import logging
import threading

from handbook_qa.rag.background import BackgroundWriter


def test_jobs_run_in_submission_order():
    writer = BackgroundWriter()
    seen = []
    for i in range(5):
        writer.submit(lambda i=i: seen.append(i))
    writer.flush()
    writer.shutdown()
    assert seen == [0, 1, 2, 3, 4]


def test_jobs_run_off_the_calling_thread():
    writer = BackgroundWriter()
    threads = []
    writer.submit(lambda: threads.append(threading.current_thread()))
    writer.flush()
    writer.shutdown()
    assert threads[0] is not threading.current_thread()


def test_failing_job_is_logged_and_dropped(caplog):
    writer = BackgroundWriter()
    seen = []

    def boom():
        raise RuntimeError("store offline")

    with caplog.at_level(logging.WARNING, logger="handbook_qa.rag.background"):
        writer.submit(boom, label="cache store")
        writer.submit(lambda: seen.append("next"))
        writer.flush()
    writer.shutdown()

    assert seen == ["next"]
    assert any("cache store failed" in r.getMessage() for r in caplog.records)
