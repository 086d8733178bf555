"""
Background worker threads for asynchronous processing.

This module contains the detection worker, which examines camera frames off the
capture thread, and the orchestrator worker, which is the only thread that
touches the capture session. Results reach the orchestrator by message passing
so they are applied strictly in frame order.
"""

import threading
import queue
import logging

from card_capture.config import WorkerConfig
from card_capture.detection.contrast_fallback import detect_with_fallback

logger = logging.getLogger(__name__)


def put_latest(q, item):
    """
    Put an item on a bounded queue, dropping the oldest entry if it is full.

    Args:
        q (queue.Queue): Target queue
        item: Item to enqueue

    Returns:
        bool: True if the item was enqueued
    """
    try:
        q.put_nowait(item)
        return True
    except queue.Full:
        try:
            _ = q.get_nowait()
        except queue.Empty:
            pass
        try:
            q.put_nowait(item)
            return True
        except queue.Full:
            return False


# ==================== Detection Worker ====================

class DetectionWorker(threading.Thread):
    """
    Background worker thread for card detection.

    Frames are fed through a one-slot queue: a frame that arrives while the
    previous one is still being examined replaces any frame waiting in the
    slot, so no backlog builds up. Results are passed to `result_sink` in frame order.
    """

    def __init__(self, detector, fallback, result_sink, stop_event=None,
                 queue_maxsize=WorkerConfig.FRAME_QUEUE_MAXSIZE):
        """
        Initialize the detection worker.

        Args:
            detector (RectangleDetector): Primary detector
            fallback (ContrastFallbackDetector): Fallback detector, or None to disable
            result_sink (callable): Called with (frame_index, observation or None)
            stop_event (threading.Event): Event to signal thread shutdown
            queue_maxsize (int): Frame slots
        """
        super().__init__(daemon=True, name="DetectionWorker")
        self.detector = detector
        self.fallback = fallback
        self.result_sink = result_sink
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.in_queue = queue.Queue(maxsize=queue_maxsize)
        self.enabled = threading.Event()
        self.enabled.set()
        self.lock = threading.Lock()
        self.latest = (None, None)  # (frame_index, observation)

        logger.info(f"DetectionWorker initialized (fallback={'on' if fallback else 'off'})")

    def feed(self, frame):
        """
        Offer a frame for detection (non-blocking).

        Args:
            frame (Frame): Camera frame

        Returns:
            bool: True if the frame was queued
        """
        if not self.enabled.is_set():
            return False
        return put_latest(self.in_queue, frame)

    def get_latest(self):
        """
        Get the most recent detection result.

        Returns:
            tuple: (frame_index, observation), (None, None) before the first frame
        """
        with self.lock:
            return self.latest

    def set_enabled(self, enabled):
        """Start or stop accepting frames. Frames already queued are discarded when disabling."""
        if enabled:
            self.enabled.set()
        else:
            self.enabled.clear()
            try:
                while True:
                    self.in_queue.get_nowait()
            except queue.Empty:
                pass

    def run(self):
        """Main worker loop - processes frames from queue."""
        logger.info("DetectionWorker started")

        while not self.stop_event.is_set():
            try:
                frame = self.in_queue.get(timeout=WorkerConfig.QUEUE_TIMEOUT)
            except queue.Empty:
                continue

            try:
                observation = detect_with_fallback(frame.image, self.detector, self.fallback)
            except Exception as e:
                logger.error(f"Detection error on frame {frame.index}: {e}", exc_info=True)
                observation = None

            with self.lock:
                self.latest = (frame.index, observation)

            try:
                self.result_sink(frame.index, observation)
            except Exception as e:
                logger.error(f"Error delivering detection result: {e}", exc_info=True)

        logger.info("DetectionWorker stopped")

    def stop(self):
        """Signal the worker to stop and exit."""
        logger.info("Stopping DetectionWorker...")
        self.stop_event.set()


# ==================== Orchestrator Worker ====================

class OrchestratorWorker(threading.Thread):
    """
    Background thread that owns the capture orchestrator.

    Every event (frame results, detection toggles, manual capture requests,
    still-capture completions) is enqueued here and applied on this thread only.
    """

    def __init__(self, orchestrator, stop_event=None,
                 queue_maxsize=WorkerConfig.EVENT_QUEUE_MAXSIZE):
        """
        Initialize the orchestrator worker.

        Args:
            orchestrator (CaptureOrchestrator): State machine owner; its `post` is redirected to this worker
            stop_event (threading.Event): Event to signal shutdown
            queue_maxsize (int): Maximum size of the event queue (0 = unbounded)
        """
        super().__init__(daemon=True, name="OrchestratorWorker")

        self.orchestrator = orchestrator
        self.orchestrator.post = self.enqueue
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.event_queue = queue.Queue(maxsize=queue_maxsize)

        logger.info("OrchestratorWorker initialized")

    def enqueue(self, event):
        """
        Add an event to the queue (non-blocking).

        Args:
            event: Capture event

        Returns:
            bool: True if the event was enqueued, False if queue was full
        """
        try:
            self.event_queue.put_nowait(event)
            return True
        except queue.Full:
            logger.warning(f"Event queue full, dropping event: {event!r}")
            return False

    def run(self):
        """Main worker loop - applies events from queue."""
        logger.info("OrchestratorWorker started")

        while not self.stop_event.is_set():
            try:
                event = self.event_queue.get(timeout=WorkerConfig.QUEUE_TIMEOUT)
            except queue.Empty:
                continue

            try:
                self.orchestrator.handle(event)
            except Exception as e:
                logger.error(f"Error processing capture event: {e}", exc_info=True)
            finally:
                self.event_queue.task_done()

        logger.info("OrchestratorWorker stopped")

    def drain(self):
        """
        Apply events still waiting in the queue on the calling thread.

        Only call this once the worker thread has exited, so completions posted
        during shutdown still reach the orchestrator.

        Returns:
            int: Number of events applied
        """
        applied = 0
        while True:
            try:
                event = self.event_queue.get_nowait()
            except queue.Empty:
                return applied
            try:
                self.orchestrator.handle(event)
                applied += 1
            except Exception as e:
                logger.error(f"Error processing capture event during shutdown: {e}", exc_info=True)
            finally:
                self.event_queue.task_done()

    def stop(self):
        """Signal the worker to stop."""
        logger.info("Stopping OrchestratorWorker...")
        self.stop_event.set()
