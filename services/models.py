"""Data classes shared across the trading services."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

BUY = "BUY"
SELL = "SELL"
LIMIT = "LIMIT"
MARKET = "MARKET"

LIMIT_ENTRY = "Limit Order"
CONFIRMATION_ENTRY = "Confirmation Entry"


@dataclass(frozen=True)
class MexcCredentials:
    """API key (sent as a header) and secret key (only used for signing)."""
    api_key: str
    secret_key: str = field(repr=False)

    @property
    def masked_api_key(self) -> str:
        return f"{self.api_key[:10]}..." if self.api_key else "NOT SET"


@dataclass
class Balance:
    asset: str
    free: str
    locked: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Balance":
        return cls(
            asset=data.get("asset", ""),
            free=str(data.get("free", "0")),
            locked=str(data.get("locked", "0")),
        )

    @property
    def free_amount(self) -> float:
        return float(self.free or 0)

    @property
    def locked_amount(self) -> float:
        return float(self.locked or 0)

    @property
    def total(self) -> float:
        return self.free_amount + self.locked_amount


@dataclass
class AccountInfo:
    """Decoded `/api/v3/account` response; `raw` keeps the venue payload."""
    balances: List[Balance]
    permissions: List[str]
    can_trade: bool = False
    can_withdraw: bool = False
    can_deposit: bool = False
    account_type: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountInfo":
        return cls(
            balances=[Balance.from_dict(b) for b in data.get("balances") or []],
            permissions=list(data.get("permissions") or []),
            can_trade=bool(data.get("canTrade", False)),
            can_withdraw=bool(data.get("canWithdraw", False)),
            can_deposit=bool(data.get("canDeposit", False)),
            account_type=data.get("accountType", ""),
            raw=data,
        )

    def non_zero_balances(self) -> List[Balance]:
        """Balances worth displaying; the raw account info is left untouched."""
        return [b for b in self.balances if b.total > 0]

    def free_balance(self, asset: str = "USDT") -> float:
        for balance in self.balances:
            if balance.asset == asset:
                return balance.free_amount
        return 0.0


@dataclass
class OrderRequest:
    symbol: str
    side: str
    type: str
    quantity: str
    timestamp: int
    price: Optional[str] = None

    def __post_init__(self):
        if self.side not in (BUY, SELL):
            raise ValueError(f"Invalid order side: {self.side}")
        if self.type not in (LIMIT, MARKET):
            raise ValueError(f"Invalid order type: {self.type}")
        # price is present if and only if the order is a LIMIT order
        if (self.type == LIMIT) != (self.price is not None):
            raise ValueError("price must be set for LIMIT orders and only for LIMIT orders")

    def to_params(self) -> Dict[str, str]:
        params = {
            "symbol": self.symbol,
            "side": self.side,
            "type": self.type,
            "quantity": self.quantity,
            "timestamp": str(self.timestamp),
        }
        if self.price is not None:
            params["price"] = self.price
        return params


@dataclass
class OrderResponse:
    symbol: str
    order_id: str
    price: str
    orig_qty: str
    type: str
    side: str
    transact_time: int
    order_list_id: int = -1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderResponse":
        return cls(
            symbol=data.get("symbol", ""),
            order_id=str(data.get("orderId", "")),
            price=str(data.get("price", "")),
            orig_qty=str(data.get("origQty", "")),
            type=data.get("type", ""),
            side=data.get("side", ""),
            transact_time=int(data.get("transactTime") or 0),
            order_list_id=int(data.get("orderListId", -1) or -1),
        )


@dataclass
class RiskParameters:
    """User risk configuration; nothing derived from it is cached."""
    risk_percentage_per_trade: float = 1.0
    max_position_size: float = 10.0
    min_risk_reward_ratio: float = 2.0
    max_daily_trades: int = 5
    max_open_positions: int = 3
    use_stop_loss: bool = True
    use_take_profit: bool = True


@dataclass
class UserSettings:
    risk_appetite: str = "Moderate"
    min_risk_reward_ratio: float = 2.0
    stop_loss_strategy: str = "Standard"
    preferred_trade_duration: str = "Any"
    trade_against_trend: bool = False


@dataclass
class StrategyLogic:
    name: str
    prompt: str
    description: str = ""
    status: str = "active"
    requirements: List[str] = field(default_factory=list)


@dataclass
class Candle:
    date: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
