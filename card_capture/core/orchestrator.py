"""
Capture state machine for Card Capture.

Ties frame detection results, stability counting and still capture together.
The state machine itself is a pure function, `transition`, that maps
(session, event) to (session, effects). `CaptureOrchestrator` owns the single
mutable session, applies events strictly one at a time and carries out the
effects through injected collaborators.
"""

from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple
import logging
import threading

from card_capture.config import CameraConfig, StabilitySettings
from card_capture.core.stability import StabilityOutcome, StabilityState, evaluate_stability
from card_capture.utils.quad import Observation

logger = logging.getLogger(__name__)


class CaptureState(Enum):
    """
    States of the capture state machine.
    """

    IDLE = "idle"
    "Detection disabled."
    SCANNING = "scanning"
    "Detection active, no stable card."
    STABLE_COUNTDOWN = "stable_countdown"
    "Card detected and holding still, counter running."
    CAPTURING = "capturing"
    "Still capture in flight."


class CaptureTrigger(Enum):
    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True)
class CaptureSettings:
    """
    Settings handed to the still-capture primitive.
    """

    flash: bool = CameraConfig.STILL_FLASH
    "Flash is never used for card captures."


@dataclass(frozen=True)
class CaptureRequest:
    """
    One still-capture attempt.
    The observation snapshot travels with the request so a later capture can never overwrite it.
    """

    request_id: int
    trigger: CaptureTrigger
    observation: Optional[Observation] = None
    "Card outline to crop with, None to detect on the still itself."


# ==================== Events ====================

@dataclass(frozen=True)
class DetectionToggled:
    active: bool


@dataclass(frozen=True)
class FrameDetected:
    frame_index: int
    observation: Optional[Observation]


@dataclass(frozen=True)
class ManualCaptureRequested:
    pass


@dataclass(frozen=True)
class CaptureCompleted:
    request_id: int
    payload: Any = None
    "Raw still (image array or encoded bytes), None if the capture failed."


# ==================== Effects ====================

@dataclass(frozen=True)
class CardDetectionChanged:
    detected: bool


@dataclass(frozen=True)
class StartCapture:
    request: CaptureRequest


@dataclass(frozen=True)
class DeliverPhoto:
    request: CaptureRequest
    payload: Any = None


@dataclass(frozen=True)
class CaptureSession:
    """
    Complete state of a capture session. Replaced, never mutated.
    """

    state: CaptureState = CaptureState.IDLE
    detection_active: bool = False
    card_currently_detected: bool = False
    stability: StabilityState = field(default_factory=StabilityState)
    in_flight: Optional[CaptureRequest] = None
    "Capture request awaiting completion, at most one."
    last_frame_index: int = -1
    "Index of the last applied frame result, older results are discarded."
    next_request_id: int = 1


def _frame_state(session: CaptureSession, outcome: StabilityOutcome) -> CaptureState:
    if session.in_flight is not None:
        return CaptureState.CAPTURING
    if not session.detection_active:
        return CaptureState.IDLE
    if outcome.counting:
        return CaptureState.STABLE_COUNTDOWN
    return CaptureState.SCANNING


def _start_capture(
    session: CaptureSession,
    trigger: CaptureTrigger,
    observation: Optional[Observation],
) -> Tuple[CaptureSession, StartCapture]:
    request = CaptureRequest(session.next_request_id, trigger, observation)
    session = replace(
        session,
        state=CaptureState.CAPTURING,
        in_flight=request,
        next_request_id=session.next_request_id + 1,
    )
    return session, StartCapture(request)


def transition(
    session: CaptureSession,
    event: Any,
    settings: StabilitySettings,
) -> Tuple[CaptureSession, List[Any]]:
    """
    Pure transition function of the capture state machine.

    Returns the next session and the list of effects to carry out, in order.
    """
    effects: List[Any] = []

    if isinstance(event, DetectionToggled):
        if event.active == session.detection_active:
            return session, effects
        if event.active:
            state = CaptureState.CAPTURING if session.in_flight else CaptureState.SCANNING
            session = replace(
                session, detection_active=True, state=state,
                stability=StabilityState(),
            )
        else:
            if session.card_currently_detected:
                effects.append(CardDetectionChanged(False))
            state = CaptureState.CAPTURING if session.in_flight else CaptureState.IDLE
            session = replace(
                session, detection_active=False, state=state,
                card_currently_detected=False,
                stability=StabilityState(),
            )
        return session, effects

    if isinstance(event, FrameDetected):
        if not session.detection_active or event.frame_index <= session.last_frame_index:
            return session, effects

        stability, outcome = evaluate_stability(session.stability, event.observation, settings)
        session = replace(session, stability=stability, last_frame_index=event.frame_index)

        if outcome.detected != session.card_currently_detected:
            session = replace(session, card_currently_detected=outcome.detected)
            effects.append(CardDetectionChanged(outcome.detected))

        if outcome.achieved and session.in_flight is None:
            session, start = _start_capture(session, CaptureTrigger.AUTO, event.observation)
            effects.append(start)
        else:
            session = replace(session, state=_frame_state(session, outcome))
        return session, effects

    if isinstance(event, ManualCaptureRequested):
        if session.in_flight is not None:
            return session, effects
        session, start = _start_capture(
            session, CaptureTrigger.MANUAL, session.stability.last_observation
        )
        effects.append(start)
        return session, effects

    if isinstance(event, CaptureCompleted):
        request = session.in_flight
        if request is None or request.request_id != event.request_id:
            return session, effects
        state = CaptureState.SCANNING if session.detection_active else CaptureState.IDLE
        session = replace(session, in_flight=None, state=state)
        effects.append(DeliverPhoto(request, event.payload))
        return session, effects

    raise ValueError(f"Unknown capture event: {event!r}")


class CaptureOrchestrator:
    """
    Single owner of the capture session.

    Events may be posted from any thread. They are queued and applied one at a
    time in arrival order; an event posted while another is being applied
    (for example a still capture that completes synchronously) waits its turn.
    """

    def __init__(self, still_source, photo_processor,
                 on_card_detection_change: Optional[Callable[[bool], None]] = None,
                 on_photo_taken: Optional[Callable[[Any], None]] = None,
                 settings: Optional[StabilitySettings] = None,
                 capture_settings: Optional[CaptureSettings] = None,
                 post: Optional[Callable[[Any], None]] = None,
                 deliver: Optional[Callable[[Callable[[], None]], None]] = None):
        """
        Initialize the orchestrator.

        Args:
            still_source: Object with `capture_still(settings)` returning a Future
            photo_processor (PhotoProcessor): Turns a raw still into the finished image
            on_card_detection_change (callable): Called with True/False on detection edges
            on_photo_taken (callable): Called once per capture with the image or None
            settings (StabilitySettings): Stability tolerance and run length
            capture_settings (CaptureSettings): Settings for the still capture
            post (callable): Where asynchronous completions are sent. Defaults to `handle`.
            deliver (callable): Runs a zero-argument callable on the UI thread. Defaults to a direct call.
        """
        self.still_source = still_source
        self.photo_processor = photo_processor
        self.on_card_detection_change = on_card_detection_change
        self.on_photo_taken = on_photo_taken
        self.settings = settings if settings is not None else StabilitySettings()
        self.capture_settings = capture_settings if capture_settings is not None else CaptureSettings()
        self.post = post if post is not None else self.handle
        self.deliver = deliver if deliver is not None else (lambda fn: fn())

        self.session = CaptureSession()
        self._pending = deque()
        self._draining = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CaptureState:
        return self.session.state

    # ---------- Controls ----------

    def set_detection_active(self, active: bool) -> None:
        self.handle(DetectionToggled(active))

    def request_manual_capture(self) -> None:
        self.handle(ManualCaptureRequested())

    def submit_frame_result(self, frame_index: int, observation: Optional[Observation]) -> None:
        self.handle(FrameDetected(frame_index, observation))

    # ---------- Event application ----------

    def handle(self, event) -> None:
        """
        Queue an event and, unless another call is already doing so, apply
        all queued events in order.
        """
        with self._lock:
            self._pending.append(event)
            if self._draining:
                return
            self._draining = True

        while True:
            with self._lock:
                if not self._pending:
                    self._draining = False
                    return
                event = self._pending.popleft()
            try:
                self._apply(event)
            except Exception as e:
                logger.error(f"Error applying capture event {event!r}: {e}", exc_info=True)

    def _apply(self, event) -> None:
        previous = self.session
        self.session, effects = transition(previous, event, self.settings)

        if self.session.state is not previous.state:
            logger.debug(f"Capture state {previous.state.value} -> {self.session.state.value}")
        if isinstance(event, ManualCaptureRequested) and not effects:
            logger.warning("Manual capture rejected, a capture is already in flight")
        if isinstance(event, CaptureCompleted) and not effects:
            logger.warning(f"Ignoring completion for unknown capture request {event.request_id}")

        for effect in effects:
            self._execute(effect)

    def _execute(self, effect) -> None:
        if isinstance(effect, CardDetectionChanged):
            logger.info(f"Card detected: {effect.detected}")
            if self.on_card_detection_change is not None:
                callback = self.on_card_detection_change
                self.deliver(lambda: callback(effect.detected))

        elif isinstance(effect, StartCapture):
            self._start_still_capture(effect.request)

        elif isinstance(effect, DeliverPhoto):
            image = self._finish_photo(effect.request, effect.payload)
            if self.on_photo_taken is not None:
                callback = self.on_photo_taken
                self.deliver(lambda: callback(image))

    def _start_still_capture(self, request: CaptureRequest) -> None:
        logger.info(f"Starting {request.trigger.value} capture #{request.request_id}"
                    f"{' with stored outline' if request.observation else ''}")
        try:
            future = self.still_source.capture_still(self.capture_settings)
        except Exception as e:
            logger.error(f"Still capture could not be started: {e}")
            self.post(CaptureCompleted(request.request_id, None))
            return

        future.add_done_callback(
            lambda f: self._on_still_done(request.request_id, f)
        )

    def _on_still_done(self, request_id: int, future) -> None:
        payload = None
        if future.cancelled():
            logger.error(f"Still capture #{request_id} was cancelled")
        elif future.exception() is not None:
            logger.error(f"Still capture #{request_id} failed: {future.exception()}")
        else:
            payload = future.result()
        self.post(CaptureCompleted(request_id, payload))

    def _finish_photo(self, request: CaptureRequest, payload):
        if payload is None:
            return None
        try:
            return self.photo_processor.process(payload, request.observation)
        except Exception as e:
            logger.error(f"Photo processing failed for capture #{request.request_id}: {e}",
                         exc_info=True)
            return None
