"""Guided chart acquisition.

A conversation with the model that requests screenshots one at a time until
the model answers with the exact completion sentinel. Phases:

    idle -> validating -> gathering <-> validating -> ready

While a turn is in flight the machine sits in `validating` and ignores new
images, so at most one model call is outstanding at any time.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from prompt import ANALYSIS_READY_SENTINEL, GUIDED_START_MESSAGE, READY_MESSAGE, guided_acquisition_prompt

from .errors import InvalidImageError, OracleError
from .llm_service import ChatSession, ImagePart, TextPart
from .models import StrategyLogic

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    GATHERING = "gathering"
    READY = "ready"


class SubmitResult(str, Enum):
    IGNORED = "ignored"
    INVALID_FORMAT = "invalid_format"
    CONTINUE = "continue"
    READY = "ready"
    ERROR = "error"
    CANCELLED = "cancelled"
    DISCARDED = "discarded"


@dataclass
class Turn:
    sender: str  # "ai" or "user"
    text: Optional[str] = None
    image: Optional[str] = None
    is_error: bool = False


class CancellationToken:
    """Marks an in-flight turn as abandoned; its reply is discarded on arrival."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class AcquisitionStateMachine:
    def __init__(
        self,
        open_chat: Callable[[str], ChatSession],
        strategies: Dict[str, StrategyLogic],
        usage_logger: Optional[Callable[[int], None]] = None,
        retain_rejected_images: bool = True,
    ):
        self.open_chat = open_chat
        self.strategies = strategies
        self.usage_logger = usage_logger
        self.retain_rejected_images = retain_rejected_images

        self.phase = Phase.IDLE
        self.turns: List[Turn] = []
        self.error: Optional[str] = None
        self.selected_strategies: List[str] = []
        self._images: List[str] = []
        self._session: Optional[ChatSession] = None
        self._lock = threading.Lock()
        self._generation = 0

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def images(self) -> Dict[int, str]:
        """Collected images keyed by acquisition order."""
        return dict(enumerate(self._images))

    @property
    def is_ready(self) -> bool:
        return self.phase == Phase.READY

    def reset(self):
        self._generation += 1
        self.phase = Phase.IDLE
        self.turns = []
        self._images = []
        self.error = None
        self._session = None

    def select_strategies(self, strategy_keys: Sequence[str]):
        """Changing the strategy selection discards any session in progress."""
        keys = list(strategy_keys)
        if keys != self.selected_strategies:
            self.reset()
        self.selected_strategies = keys

    def load_images(self, images: Dict[int, str]) -> bool:
        """Adopt images supplied from elsewhere and skip straight to ready."""
        if self.phase != Phase.IDLE or not images:
            return False
        self._images = [images[key] for key in sorted(images)]
        self.phase = Phase.READY
        return True

    def _log_usage(self, tokens: int):
        if self.usage_logger is not None:
            self.usage_logger(tokens or 0)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, cancel_token: Optional[CancellationToken] = None) -> bool:
        """Open a fresh guided session for the primary selected strategy."""
        with self._lock:
            if self.phase == Phase.VALIDATING:
                return False
            if not self.selected_strategies:
                self.error = "Select at least one strategy before starting the guided upload."
                return False
            strategy = self.strategies.get(self.selected_strategies[0])
            if strategy is None:
                self.error = "Could not find the logic for the selected strategy."
                return False

            self.reset()
            self.phase = Phase.VALIDATING
            generation = self._generation

        try:
            session = self.open_chat(guided_acquisition_prompt(strategy))
            reply = session.send_turn([TextPart(GUIDED_START_MESSAGE)])
        except OracleError as e:
            if generation != self._generation:
                return False
            logger.error(f"Guided session failed to start: {e}")
            self.reset()
            self.error = f"Failed to start guided session: {e}"
            return False

        self._log_usage(reply.token_usage)
        if generation != self._generation:
            logger.info("Discarding start reply from a session that was reset")
            return False
        if cancel_token is not None and cancel_token.cancelled:
            self.reset()
            return False

        self._session = session
        self.turns = [Turn(sender="ai", text=reply.text)]
        self.phase = Phase.GATHERING
        logger.info(f"Guided acquisition started for {strategy.name}")
        return True

    def submit_image(self, data_url: str, cancel_token: Optional[CancellationToken] = None) -> SubmitResult:
        """Forward one screenshot to the open session."""
        with self._lock:
            if self.phase != Phase.GATHERING or self._session is None:
                return SubmitResult.IGNORED
            self.phase = Phase.VALIDATING
            self.turns.append(Turn(sender="user", image=data_url))
            generation = self._generation
            session = self._session

        try:
            image = ImagePart.from_data_url(data_url)
        except InvalidImageError:
            self.turns.append(Turn(sender="ai", text="Invalid image format. Please try again.", is_error=True))
            self.phase = Phase.GATHERING
            return SubmitResult.INVALID_FORMAT

        try:
            reply = session.send_turn([image])
        except OracleError as e:
            if generation != self._generation:
                return SubmitResult.DISCARDED
            logger.warning(f"Guided turn failed: {e}")
            self.turns.append(Turn(
                sender="ai",
                text=f"An error occurred: {e}. Please try uploading the image again.",
                is_error=True,
            ))
            self.phase = Phase.GATHERING
            return SubmitResult.ERROR

        # every completed round trip is metered
        self._log_usage(reply.token_usage)
        if generation != self._generation:
            logger.info("Discarding reply from a session that was reset mid-turn")
            return SubmitResult.DISCARDED

        if cancel_token is not None and cancel_token.cancelled:
            self.turns.append(Turn(sender="ai", text="Request cancelled. Please upload the image again.",
                                   is_error=True))
            self.phase = Phase.GATHERING
            return SubmitResult.CANCELLED

        response_text = reply.text.strip()

        if response_text == ANALYSIS_READY_SENTINEL:
            self._images.append(data_url)
            self.turns.append(Turn(sender="ai", text=READY_MESSAGE))
            self.phase = Phase.READY
            logger.info(f"Guided acquisition complete with {len(self._images)} images")
            return SubmitResult.READY

        # Anything but the sentinel means "keep gathering", rejections included
        if self.retain_rejected_images:
            self._images.append(data_url)
        self.turns.append(Turn(sender="ai", text=response_text))
        self.phase = Phase.GATHERING
        return SubmitResult.CONTINUE
