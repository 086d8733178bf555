"""
Tests for the detection and orchestrator worker threads.
"""
from __future__ import annotations

import queue
import threading
import time

import numpy as np

from card_capture.config import StabilitySettings
from card_capture.core.camera_thread import Frame
from card_capture.core.orchestrator import (
    CaptureOrchestrator,
    CaptureState,
    DetectionToggled,
    FrameDetected,
)
from card_capture.core.workers import DetectionWorker, OrchestratorWorker, put_latest

from helpers import FakeStillSource, Recorder, make_observation


def _frame(index):
    return Frame(np.zeros((4, 4, 3), np.uint8), time.monotonic(), index)


class StubDetector:
    def __init__(self, result=None):
        self.result = result

    def detect(self, frame, source=None):
        return self.result


class PassThroughProcessor:
    def process(self, payload, observation=None):
        return payload


def test_put_latest_replaces_waiting_item():
    q = queue.Queue(maxsize=1)
    assert put_latest(q, "old")
    assert put_latest(q, "new")
    assert q.get_nowait() == "new"
    assert q.empty()


def test_feed_keeps_only_newest_frame():
    worker = DetectionWorker(StubDetector(), None, lambda i, o: None)

    worker.feed(_frame(1))
    worker.feed(_frame(2))
    worker.feed(_frame(3))

    assert worker.in_queue.qsize() == 1
    assert worker.in_queue.get_nowait().index == 3


def test_disabled_worker_discards_frames():
    worker = DetectionWorker(StubDetector(), None, lambda i, o: None)
    worker.feed(_frame(1))

    worker.set_enabled(False)
    assert worker.in_queue.empty()
    assert not worker.feed(_frame(2))

    worker.set_enabled(True)
    assert worker.feed(_frame(3))


def test_worker_reports_results_in_frame_order():
    obs = make_observation()
    results = []
    done = threading.Event()

    def sink(index, observation):
        results.append((index, observation))
        if len(results) == 3:
            done.set()

    stop = threading.Event()
    worker = DetectionWorker(StubDetector(obs), None, sink, stop_event=stop)
    worker.start()
    try:
        for i in (1, 2, 3):
            worker.feed(_frame(i))
            # let the worker pick the frame up before offering the next one
            deadline = time.monotonic() + 2.0
            while len(results) < i and time.monotonic() < deadline:
                time.sleep(0.005)
        assert done.wait(2.0)
    finally:
        worker.stop()
        worker.join(timeout=2.0)

    assert [i for i, _ in results] == [1, 2, 3]
    assert all(o == obs for _, o in results)
    assert worker.get_latest() == (3, obs)


def test_detector_exception_reports_no_card():
    class Failing:
        def detect(self, frame, source=None):
            raise RuntimeError("bad frame")

    got = []
    event = threading.Event()
    stop = threading.Event()

    def sink(index, observation):
        got.append((index, observation))
        event.set()

    worker = DetectionWorker(Failing(), None, sink, stop_event=stop)
    worker.start()
    try:
        worker.feed(_frame(7))
        assert event.wait(2.0)
    finally:
        worker.stop()
        worker.join(timeout=2.0)

    assert got == [(7, None)]


def test_orchestrator_worker_applies_events_and_completions():
    photos = Recorder()
    source = FakeStillSource()
    orch = CaptureOrchestrator(source, PassThroughProcessor(),
                               on_photo_taken=photos,
                               settings=StabilitySettings(required_frames=2))
    stop = threading.Event()
    worker = OrchestratorWorker(orch, stop_event=stop)
    assert orch.post == worker.enqueue

    worker.start()
    try:
        worker.enqueue(DetectionToggled(True))
        for i in range(1, 4):
            worker.enqueue(FrameDetected(i, make_observation()))
        worker.event_queue.join()
        assert orch.state is CaptureState.CAPTURING

        # completion arrives from another thread and is routed through the worker
        source.futures[0].set_result("raw")
        worker.event_queue.join()
    finally:
        worker.stop()
        worker.join(timeout=2.0)

    assert photos.calls == ["raw"]
    assert orch.state is CaptureState.SCANNING


def test_latest_result_is_empty_before_first_frame():
    worker = DetectionWorker(StubDetector(), None, lambda i, o: None)
    assert worker.get_latest() == (None, None)


def test_drain_applies_completions_left_after_worker_exit():
    photos = Recorder()
    source = FakeStillSource()
    orch = CaptureOrchestrator(source, PassThroughProcessor(), on_photo_taken=photos)
    worker = OrchestratorWorker(orch)
    orch.set_detection_active(True)
    orch.request_manual_capture()

    # completion arrives after the worker thread has gone
    source.futures[0].set_result("raw")
    assert photos.calls == []
    assert worker.event_queue.qsize() == 1

    assert worker.drain() == 1
    assert photos.calls == ["raw"]
    assert orch.state is CaptureState.SCANNING
    assert worker.drain() == 0
