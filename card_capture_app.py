"""
Card Capture - Automatic ID card capture from a live camera.

This is the main entry point. It shows the camera preview, outlines the card
when one is found and takes a photo automatically once the card has been held
still. Finished, straightened card images are written to the output directory.
"""

import cv2 as cv
import time
import queue
import threading
import signal
import logging

from card_capture.args_parser import get_args
from card_capture.config import CameraConfig, FallbackConfig, UIConfig, WorkerConfig, StabilitySettings
from card_capture.core.camera_thread import setup_camera
from card_capture.core.orchestrator import (
    CaptureOrchestrator,
    CaptureState,
    DetectionToggled,
    FrameDetected,
    ManualCaptureRequested,
)
from card_capture.core.utils import select_camera_port, save_card_image
from card_capture.core.workers import DetectionWorker, OrchestratorWorker
from card_capture.detection.contrast_fallback import ContrastFallbackDetector
from card_capture.detection.rectangle_detector import RectangleDetector
from card_capture.processing.photo import PhotoProcessor
from card_capture.ui.display import draw_overlay

logger = logging.getLogger(__name__)


def configure_logging(debug=False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def make_photo_handler(out_dir):
    """
    Build the "photo taken" callback that stores finished card images.

    Args:
        out_dir (str): Output directory

    Returns:
        callable: Callback taking an image or None
    """
    def on_photo_taken(image):
        if image is None:
            logger.error("Capture failed, no image for this attempt")
            return
        path = save_card_image(image, out_dir)
        if path:
            h, w = image.shape[:2]
            logger.info(f"Card image saved to {path} ({w}x{h})")

    return on_photo_taken


def on_card_detection_change(detected):
    logger.info("Card in view" if detected else "Card lost")


def initialize_system(args, ui_calls):
    """
    Initialize all system components.

    Args:
        args (argparse.Namespace): Command line arguments
        ui_calls (queue.Queue): Callbacks to run on the UI (main) thread

    Returns:
        dict: Dictionary containing all initialized components
    """
    logger.info("Initializing Card Capture...")

    stability = StabilitySettings(tolerance=args.tolerance, required_frames=args.required_frames)
    detector = RectangleDetector()
    use_fallback = FallbackConfig.ENABLED and not args.no_fallback
    fallback = ContrastFallbackDetector(detector) if use_fallback else None

    orchestrator = CaptureOrchestrator(
        still_source=None,  # attached once the camera is open
        photo_processor=PhotoProcessor(detector),
        on_card_detection_change=on_card_detection_change,
        on_photo_taken=make_photo_handler(args.out),
        settings=stability,
        deliver=ui_calls.put,
    )

    logger.info("System initialization complete")

    return {
        'cam_port': select_camera_port(args.camera),
        'detector': detector,
        'fallback': fallback,
        'orchestrator': orchestrator,
        'stability': stability,
    }


def create_worker_threads(components, stop_event):
    """
    Create and start background worker threads.

    Args:
        components (dict): Dictionary of system components
        stop_event (threading.Event): Event for coordinated shutdown

    Returns:
        dict: Dictionary containing the workers
    """
    logger.info("Creating worker threads...")

    orchestrator_worker = OrchestratorWorker(components['orchestrator'], stop_event=stop_event)
    detection_worker = DetectionWorker(
        components['detector'],
        components['fallback'],
        lambda index, observation: orchestrator_worker.enqueue(FrameDetected(index, observation)),
        stop_event=stop_event,
    )

    orchestrator_worker.start()
    detection_worker.start()

    logger.info("Worker threads started")

    return {
        'orchestrator_worker': orchestrator_worker,
        'detection_worker': detection_worker,
    }


def set_detection_active(active, workers):
    """Enable or disable the per-frame pipeline."""
    workers['detection_worker'].set_enabled(active)
    workers['orchestrator_worker'].enqueue(DetectionToggled(active))
    logger.info(f"Detection {'enabled' if active else 'disabled'}")


def request_manual_capture(workers):
    logger.info("Manual capture requested")
    workers['orchestrator_worker'].enqueue(ManualCaptureRequested())


def setup_signal_handler(stop_event):
    """
    Setup signal handler for graceful shutdown.

    Args:
        stop_event (threading.Event): Event to signal on interrupt
    """
    def signal_handler(sig, frame):
        logger.info("Signal received, shutting down...")
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def handle_keyboard_input(waitkey, stop_event, workers, components):
    """
    Handle keyboard input for user controls.

    Args:
        waitkey: Key code from cv.waitKey()
        stop_event: Event for shutdown signaling
        workers (dict): Worker threads
        components (dict): System components

    Returns:
        bool: True if should continue, False if should exit
    """
    if waitkey == 27 or waitkey == ord('q'):
        logger.info('Exiting...')
        stop_event.set()
        return False

    if waitkey == ord('c'):
        request_manual_capture(workers)

    if waitkey == ord('d'):
        active = components['orchestrator'].session.detection_active
        set_detection_active(not active, workers)

    return True


def run_ui_calls(ui_calls):
    """Run callbacks queued for the UI thread."""
    while True:
        try:
            call = ui_calls.get_nowait()
        except queue.Empty:
            return
        try:
            call()
        except Exception as e:
            logger.error(f"UI callback failed: {e}", exc_info=True)


def run_main_loop(camera, components, workers, ui_calls, stop_event, headless=False):
    """
    Main loop: draw the preview and dispatch UI callbacks.

    Args:
        camera (ThreadedCamera): Running camera
        components (dict): System components
        workers (dict): Worker threads
        ui_calls (queue.Queue): Callbacks to run on this thread
        stop_event: Event for shutdown coordination
        headless (bool): Whether to run without a preview window
    """
    logger.info(f"Starting main loop (headless={headless})")
    if not headless:
        cv.namedWindow(UIConfig.WINDOW_NAME, cv.WINDOW_NORMAL)

    orchestrator = components['orchestrator']
    required = components['stability'].required_frames

    while camera.isOpened() and not stop_event.is_set():
        run_ui_calls(ui_calls)

        if headless:
            time.sleep(WorkerConfig.QUEUE_TIMEOUT)
            continue

        frame = camera.read()
        if frame is None:
            time.sleep(0.01)
            continue

        session = orchestrator.session
        _, observation = workers['detection_worker'].get_latest()
        display_img = frame.image.copy()
        if session.detection_active:
            draw_overlay(display_img, observation, session.stability.stable_count, required,
                         capturing=session.state is CaptureState.CAPTURING)

        cv.imshow(UIConfig.WINDOW_NAME, display_img)
        waitkey = cv.waitKey(1) & 0xFF
        if waitkey != 255:
            if not handle_keyboard_input(waitkey, stop_event, workers, components):
                break

    # Deliver anything that completed during shutdown
    run_ui_calls(ui_calls)


def cleanup(camera, workers, ui_calls=None):
    """
    Clean up resources and shut down gracefully.

    The camera is released before the orchestrator worker stops, so a still
    capture that is still in flight completes and its photo is delivered.

    Args:
        camera (ThreadedCamera): Camera to release, may be None
        workers (dict): Worker threads
        ui_calls (queue.Queue): UI callbacks still to run, may be None
    """
    logger.info("Cleaning up resources...")

    workers['detection_worker'].stop()
    workers['detection_worker'].join(timeout=WorkerConfig.THREAD_SHUTDOWN_TIMEOUT)

    # Waits for the still executor, posting any pending completion
    if camera is not None:
        camera.release()

    orchestrator_worker = workers['orchestrator_worker']
    orchestrator_worker.stop()
    orchestrator_worker.join(timeout=WorkerConfig.THREAD_SHUTDOWN_TIMEOUT)
    if orchestrator_worker.is_alive():
        logger.warning("OrchestratorWorker did not stop in time, pending capture events dropped")
    else:
        orchestrator_worker.drain()

    if ui_calls is not None:
        run_ui_calls(ui_calls)
    cv.destroyAllWindows()

    logger.info("Cleanup complete")


def main():
    args = get_args()
    configure_logging(args.debug)
    if args.headless:
        CameraConfig.HEADLESS = True

    ui_calls = queue.Queue()
    components = initialize_system(args, ui_calls)

    stop_event = threading.Event()
    setup_signal_handler(stop_event)
    workers = create_worker_threads(components, stop_event)

    camera, access = setup_camera(components['cam_port'],
                                  frame_sink=workers['detection_worker'].feed)
    if camera is None:
        logger.error(f"Camera unavailable ({access.value}), exiting")
        cleanup(None, workers, ui_calls)
        return 1

    components['orchestrator'].still_source = camera
    set_detection_active(True, workers)

    if not CameraConfig.HEADLESS:
        logger.info("Controls: 'c'=capture now, 'd'=toggle detection, 'q'=quit")
    else:
        logger.info("Running in headless mode. Send SIGINT (Ctrl+C) or SIGTERM to stop.")

    try:
        run_main_loop(camera, components, workers, ui_calls, stop_event,
                      headless=CameraConfig.HEADLESS)
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received, shutting down...")
        stop_event.set()
    finally:
        cleanup(camera, workers, ui_calls)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
