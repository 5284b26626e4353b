"""Final multimodal analysis: one request built from the collected context."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from prompt import CACHED_DATA_ONLY_MESSAGE, analysis_system_instruction

from .errors import AnalysisParseError, NoContextError
from .llm_service import ImagePart, Part, TextPart
from .models import Candle, StrategyLogic, UserSettings
from .results import AnalysisResults

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` fence (with optional language tag) if present."""
    text = text.strip()
    match = FENCE_PATTERN.match(text)
    if match and match.group(2):
        return match.group(2).strip()
    return text


def resolve_current_price(series: Dict[str, List[Candle]]) -> Optional[float]:
    """Close of the most recent candle across all selected series."""
    current_price = None
    latest = None
    for candles in series.values():
        if not candles:
            continue
        last = max(candles, key=lambda c: c.date)
        if latest is None or last.date > latest:
            latest = last.date
            current_price = last.close
    return current_price


def parse_analysis(text: str) -> AnalysisResults:
    json_text = strip_code_fence(text)
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise AnalysisParseError(f"Response is not valid JSON: {e}", raw_text=text) from e
    if not isinstance(data, dict):
        raise AnalysisParseError("Response JSON is not an object", raw_text=text)
    try:
        return AnalysisResults.model_validate(data)
    except ValidationError as e:
        raise AnalysisParseError(f"Response is missing mandatory fields: {e}", raw_text=text) from e


def fill_missing_entries(results: AnalysisResults, current_price: Optional[float]) -> AnalysisResults:
    """Give trades without an entry the current price anchor, or "N/A" when there is none."""
    fallback = f"{current_price:.4f}" if current_price is not None else "N/A"
    for trade in results.top_longs + results.top_shorts:
        if not trade.entry.strip():
            trade.entry = fallback
    return results


@dataclass(frozen=True)
class AnalysisRequest:
    strategy_keys: Tuple[str, ...]
    system_instruction: str
    parts: Tuple[Part, ...]
    image_count: int
    current_price: Optional[float]


class AnalysisDispatcher:
    def __init__(self, llm, strategies: Dict[str, StrategyLogic],
                 usage_logger: Optional[Callable[[int], None]] = None):
        self.llm = llm
        self.strategies = strategies
        self.usage_logger = usage_logger

    def build_request(
        self,
        strategy_keys: Sequence[str],
        settings: UserSettings,
        images: Dict[int, str],
        selected_series: Dict[str, List[Candle]],
    ) -> AnalysisRequest:
        if not images and not selected_series:
            raise NoContextError(
                "No context provided. Please complete the guided chart upload or select "
                "cached market data to run an analysis."
            )

        # Images go out in acquisition order; a bad data URL fails here, before any call
        image_parts: List[Part] = [ImagePart.from_data_url(images[key]) for key in sorted(images)]
        current_price = resolve_current_price(selected_series)

        system_instruction = analysis_system_instruction(
            strategy_keys,
            self.strategies,
            settings,
            image_count=len(image_parts),
            dataset_counts={key: len(candles) for key, candles in selected_series.items()},
            current_price=current_price,
        )
        parts = image_parts or [TextPart(CACHED_DATA_ONLY_MESSAGE)]
        return AnalysisRequest(
            strategy_keys=tuple(strategy_keys),
            system_instruction=system_instruction,
            parts=tuple(parts),
            image_count=len(image_parts),
            current_price=current_price,
        )

    def dispatch(self, request: AnalysisRequest) -> AnalysisResults:
        reply = self.llm.generate(request.system_instruction, request.parts)
        if self.usage_logger is not None:
            self.usage_logger(reply.token_usage or 0)

        results = fill_missing_entries(parse_analysis(reply.text), request.current_price)
        logger.info(
            f"Analysis returned {len(results.top_longs)} longs and {len(results.top_shorts)} shorts"
        )
        return results

    def run(self, strategy_keys: Sequence[str], settings: UserSettings,
            images: Dict[int, str], selected_series: Dict[str, List[Candle]]) -> AnalysisResults:
        return self.dispatch(self.build_request(strategy_keys, settings, images, selected_series))
