"""Validated shape of the final analysis JSON returned by the model."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TradeManagement(BaseModel):
    model_config = ConfigDict(extra="allow")

    move_to_breakeven_condition: str = ""
    partial_take_profit_1: str = ""
    partial_take_profit_2: str = ""


class Trade(BaseModel):
    """A single trade setup. Prices stay strings, as the model writes them."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = ""
    direction: Literal["Long", "Short"]
    symbol: str = ""
    entry: str = ""
    entry_type: str = Field("Limit Order", alias="entryType")
    entry_explanation: str = Field("", alias="entryExplanation")
    stop_loss: str = Field(alias="stopLoss")
    take_profit_1: str = Field(alias="takeProfit1")
    take_profit_2: str = Field("", alias="takeProfit2")
    heat: int = Field(ge=1, le=5)
    explanation: str = Field(min_length=1)
    trade_management: Optional[TradeManagement] = Field(None, alias="tradeManagement")

    @field_validator("entry", "stop_loss", "take_profit_1", "take_profit_2", mode="before")
    @classmethod
    def _price_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("entry", mode="before")
    @classmethod
    def _blank_entry(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def entry_price(self) -> float:
        return float(self.entry)

    @property
    def stop_loss_price(self) -> float:
        return float(self.stop_loss)

    @property
    def take_profit_price(self) -> float:
        return float(self.take_profit_1)


class StrategySuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    suggested_strategies: List[str] = Field(default_factory=list, alias="suggestedStrategies")
    suggested_settings: Dict[str, Any] = Field(default_factory=dict, alias="suggestedSettings")
    reasoning: str


class AnalysisResults(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    top_longs: List[Trade] = Field(alias="Top Longs")
    top_shorts: List[Trade] = Field(alias="Top Shorts")
    strategy_suggestion: StrategySuggestion = Field(alias="strategySuggestion")
    chart_metadata: Optional[Dict[str, str]] = Field(None, alias="chartMetadata")

    @property
    def is_aborted(self) -> bool:
        """True when the model returned no setups and explained why."""
        return not self.top_longs and not self.top_shorts

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
