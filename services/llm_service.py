"""LLM transport for guided chart acquisition and final analysis.

Calls go through LiteLLM so any vision-capable provider can be configured
(e.g. "gemini/gemini-2.5-flash", "gpt-4o", "claude-3-5-sonnet-20241022").
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import litellm

from .config import LLMConfig
from .errors import InvalidImageError, ModelTransportError

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(image/(?:png|jpeg|webp));base64,")


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    mime_type: str
    data: str

    @classmethod
    def from_data_url(cls, data_url: str) -> "ImagePart":
        """Split a base64 data URL. Only PNG, JPEG and WEBP are accepted."""
        match = DATA_URL_PATTERN.match(data_url or "")
        if not match:
            raise InvalidImageError("Invalid image format. Expected a base64 PNG, JPEG or WEBP data URL.")
        return cls(mime_type=match.group(1), data=data_url[match.end():])

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


Part = Union[TextPart, ImagePart]


@dataclass
class ModelReply:
    text: str
    token_usage: int = 0


class ChatSession(Protocol):
    """An open conversation with the model; one turn at a time."""

    def send_turn(self, parts: Sequence[Part]) -> ModelReply:
        ...


def to_message_content(parts: Sequence[Part]) -> List[Dict[str, Any]]:
    content: List[Dict[str, Any]] = []
    for part in parts:
        if isinstance(part, TextPart):
            content.append({"type": "text", "text": part.text})
        else:
            content.append({"type": "image_url", "image_url": {"url": part.data_url}})
    return content


def _total_tokens(response) -> int:
    usage = getattr(response, "usage", None)
    if usage is None:
        return 0
    if isinstance(usage, dict):
        return int(usage.get("total_tokens") or 0)
    return int(getattr(usage, "total_tokens", 0) or 0)


def _reply_from_response(response, model: str) -> ModelReply:
    if not response.choices or response.choices[0].message.content is None:
        raise ModelTransportError(f"{model} returned empty content")
    return ModelReply(text=response.choices[0].message.content, token_usage=_total_tokens(response))


class LiteLLMChatSession:
    """Multi-turn chat that keeps its own history and replays it each turn."""

    def __init__(self, model: str, system_instruction: str, timeout: float = 60.0):
        self.model = model
        self.timeout = timeout
        self.messages: List[Dict[str, Any]] = [{"role": "system", "content": system_instruction}]

    def send_turn(self, parts: Sequence[Part]) -> ModelReply:
        user_message = {"role": "user", "content": to_message_content(parts)}
        try:
            response = litellm.completion(
                model=self.model,
                messages=self.messages + [user_message],
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(f"Chat turn with {self.model} failed: {e}")
            raise ModelTransportError(str(e)) from e

        reply = _reply_from_response(response, self.model)
        # History only grows once a turn has round-tripped
        self.messages.append(user_message)
        self.messages.append({"role": "assistant", "content": reply.text})
        return reply


class LLMService:
    """Factory for chat sessions and single-shot multimodal calls."""

    def __init__(self, config: Optional[LLMConfig] = None):
        self.config = config or LLMConfig()

    def open_chat(self, system_instruction: str) -> LiteLLMChatSession:
        return LiteLLMChatSession(self.config.model, system_instruction, timeout=self.config.timeout)

    def generate(self, system_instruction: str, parts: Sequence[Part], json_mode: bool = True) -> ModelReply:
        """Single request: system instruction plus one user turn of parts."""
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        model = self.config.analysis_model
        logger.info(f"Sending analysis request to {model} ({len(parts)} parts)")
        try:
            response = litellm.completion(
                model=model,
                messages=[
                    {"role": "system", "content": system_instruction},
                    {"role": "user", "content": to_message_content(parts)},
                ],
                timeout=self.config.timeout,
                **kwargs,
            )
        except Exception as e:
            logger.error(f"Analysis call to {model} failed: {e}")
            raise ModelTransportError(str(e)) from e

        return _reply_from_response(response, model)
