"""Risk-checked trade execution on MEXC spot."""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import ConfigurationError, ExchangeAPIError
from .mexc_service import MexcClient
from .models import BUY, LIMIT, SELL, MexcCredentials, OrderRequest, OrderResponse, RiskParameters
from .risk_service import format_quantity, is_sizable, position_size, risk_amount, risk_reward

logger = logging.getLogger(__name__)

PLACED = "placed"
REJECTED = "rejected"
FAILED = "failed"
PARTIALLY_PROTECTED = "partially_protected"


@dataclass
class ProtectiveLeg:
    kind: str
    price: str
    status: str
    order: Optional[OrderResponse] = None
    error: Optional[str] = None


@dataclass
class ExecutionOutcome:
    status: str
    message: str
    quantity: str = "0"
    risk_reward: float = math.nan
    risk_amount: float = 0.0
    entry_order: Optional[OrderResponse] = None
    protective_legs: List[ProtectiveLeg] = field(default_factory=list)

    @property
    def entry_placed(self) -> bool:
        return self.entry_order is not None


class TradeExecutor:
    """Sizes a trade from the risk settings, places the entry, then its exits."""

    def __init__(self, client: MexcClient):
        self.client = client

    def execute(
        self,
        credentials: Optional[MexcCredentials],
        trade,
        symbol: str,
        account_balance: float,
        risk: RiskParameters,
    ) -> ExecutionOutcome:
        if credentials is None:
            raise ConfigurationError("MEXC API credentials not configured. Please add them in Settings.")

        try:
            entry = trade.entry_price
            stop = trade.stop_loss_price
            target = trade.take_profit_price
        except (TypeError, ValueError) as e:
            return ExecutionOutcome(REJECTED, f"Trade prices are not numeric: {e}")

        rr = risk_reward(entry, stop, target)
        quantity = position_size(account_balance, risk.risk_percentage_per_trade, entry, stop)
        amount = risk_amount(account_balance, risk.risk_percentage_per_trade)

        if not is_sizable(quantity):
            return ExecutionOutcome(REJECTED, "Entry equals stop loss; position cannot be sized.",
                                    risk_reward=rr, risk_amount=amount)

        if rr < risk.min_risk_reward_ratio:
            return ExecutionOutcome(
                REJECTED,
                f"Risk/Reward ratio ({rr:.2f}) is below minimum ({risk.min_risk_reward_ratio}). Trade rejected.",
                quantity=format_quantity(quantity), risk_reward=rr, risk_amount=amount,
            )

        max_notional = account_balance * risk.max_position_size / 100
        if entry > 0 and quantity * entry > max_notional:
            logger.info(f"Capping {symbol} position at {risk.max_position_size}% of account")
            quantity = max_notional / entry

        qty = format_quantity(quantity)

        try:
            entry_order = self.client.place_order(credentials, trade, symbol, qty)
        except ExchangeAPIError as e:
            logger.error(f"Entry order for {symbol} failed: {e}")
            return ExecutionOutcome(FAILED, str(e), quantity=qty, risk_reward=rr, risk_amount=amount)

        legs = self._place_protective_orders(credentials, trade, symbol, qty, risk)
        failed = [leg for leg in legs if leg.status == FAILED]

        if failed:
            kinds = ", ".join(leg.kind for leg in failed)
            status = PARTIALLY_PROTECTED
            message = f"Entry order {entry_order.order_id} placed but protective order(s) failed: {kinds}"
            logger.warning(message)
        else:
            status = PLACED
            message = f"Order placed successfully! Order ID: {entry_order.order_id}"

        return ExecutionOutcome(status, message, quantity=qty, risk_reward=rr, risk_amount=amount,
                                entry_order=entry_order, protective_legs=legs)

    def _place_protective_orders(self, credentials, trade, symbol, quantity, risk) -> List[ProtectiveLeg]:
        legs: List[ProtectiveLeg] = []
        exit_side = SELL if trade.direction == "Long" else BUY

        if risk.use_take_profit and trade.take_profit_1:
            legs.append(self._place_exit(credentials, "take_profit", symbol, exit_side,
                                         quantity, trade.take_profit_1))

        if risk.use_stop_loss and trade.stop_loss:
            # Spot v3 has no stop order type; a LIMIT at the stop would fill at once
            legs.append(ProtectiveLeg(
                kind="stop_loss",
                price=trade.stop_loss,
                status="not_supported",
                error="MEXC spot does not accept stop orders; manage this stop manually.",
            ))

        return legs

    def _place_exit(self, credentials, kind, symbol, side, quantity, price) -> ProtectiveLeg:
        order = OrderRequest(
            symbol=symbol,
            side=side,
            type=LIMIT,
            quantity=quantity,
            price=str(price),
            timestamp=self.client.clock(),
        )
        try:
            response = self.client.submit_order(credentials, order)
        except ExchangeAPIError as e:
            return ProtectiveLeg(kind=kind, price=str(price), status=FAILED, error=str(e))
        return ProtectiveLeg(kind=kind, price=str(price), status=PLACED, order=response)
