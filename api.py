"""FastAPI application for the trading assistant: MEXC account, orders, guided chart upload and analysis."""

import logging
import math
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from services.config import AppConfig
from services.errors import (
    AnalysisParseError,
    ConfigurationError,
    ExchangeAPIError,
    InvalidImageError,
    ModelTransportError,
    NoContextError,
    OracleError,
)
from services.market_data_service import split_cache_key
from services.models import RiskParameters, UserSettings
from services.results import Trade
from services.trading_orchestrator import TradingOrchestrator

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

CLIENT_ERRORS = (ConfigurationError, InvalidImageError, NoContextError)
UPSTREAM_ERRORS = (ExchangeAPIError, ModelTransportError, AnalysisParseError)


# Request / response models
class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str


class StartAcquisitionRequest(BaseModel):
    strategies: List[str]


class ImageSubmission(BaseModel):
    data_url: str


class AcquisitionState(BaseModel):
    phase: str
    turns: List[Dict[str, Any]]
    image_count: int
    error: Optional[str] = None
    selected_strategies: List[str]


class OrderPlacement(BaseModel):
    trade: Trade
    symbol: str = "BTCUSDT"


class AnalysisBody(BaseModel):
    market_data: List[str] = Field(default_factory=list)


class MarketDataRefresh(BaseModel):
    symbol: str
    timeframe: str
    limit: int = 100


class RiskSettingsModel(BaseModel):
    risk_percentage_per_trade: float = Field(1.0, gt=0, le=100)
    max_position_size: float = Field(10.0, gt=0, le=100)
    min_risk_reward_ratio: float = Field(2.0, ge=0)
    max_daily_trades: int = Field(5, ge=0)
    max_open_positions: int = Field(3, ge=0)
    use_stop_loss: bool = True
    use_take_profit: bool = True


class UserSettingsModel(BaseModel):
    risk_appetite: str = "Moderate"
    min_risk_reward_ratio: float = 2.0
    stop_loss_strategy: str = "Standard"
    preferred_trade_duration: str = "Any"
    trade_against_trend: bool = False


def _acquisition_state(orchestrator: TradingOrchestrator) -> AcquisitionState:
    machine = orchestrator.acquisition
    return AcquisitionState(
        phase=machine.phase.value,
        turns=[asdict(turn) for turn in machine.turns],
        image_count=len(machine.images),
        error=machine.error,
        selected_strategies=machine.selected_strategies,
    )


def create_app(orchestrator: Optional[TradingOrchestrator] = None) -> FastAPI:
    if orchestrator is None:
        load_dotenv()
        orchestrator = TradingOrchestrator(AppConfig.from_env())

    app = FastAPI(
        title="Chart Oracle API",
        description="Guided chart acquisition, AI trade setups and MEXC execution",
        version=VERSION,
    )
    app.state.orchestrator = orchestrator

    @app.exception_handler(OracleError)
    async def oracle_error_handler(request: Request, exc: OracleError):
        if isinstance(exc, CLIENT_ERRORS):
            status_code = 400
        elif isinstance(exc, UPSTREAM_ERRORS):
            status_code = 502
        else:
            status_code = 500
        logger.warning(f"{request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code,
                            content={"error": type(exc).__name__, "detail": str(exc)})

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(status="healthy", timestamp=datetime.now().isoformat(), version=VERSION)

    # Exchange
    @app.get("/account")
    def account():
        info = orchestrator.account_info()
        return {
            "canTrade": info.can_trade,
            "accountType": info.account_type,
            "permissions": info.permissions,
            "balances": [asdict(b) for b in info.balances],
        }

    @app.get("/balances")
    def balances():
        return [
            {"asset": b.asset, "free": b.free_amount, "locked": b.locked_amount}
            for b in orchestrator.balances()
        ]

    @app.get("/symbols")
    def symbols():
        return orchestrator.mexc_client.list_symbols()

    @app.get("/authorized-symbols")
    def authorized_symbols():
        return orchestrator.authorized_symbols()

    @app.get("/price/{symbol}")
    def price(symbol: str):
        return {"symbol": symbol, "price": orchestrator.mexc_client.get_price(symbol)}

    @app.post("/orders")
    def place_order(body: OrderPlacement):
        outcome = asdict(orchestrator.execute_trade(body.trade, body.symbol))
        # nan is not valid JSON
        if not math.isfinite(outcome["risk_reward"]):
            outcome["risk_reward"] = None
        return outcome

    @app.get("/diagnostics")
    def diagnostics():
        return orchestrator.run_diagnostics().to_dict()

    # Settings
    @app.put("/settings/risk")
    def update_risk_settings(body: RiskSettingsModel):
        orchestrator.risk_parameters = RiskParameters(**body.model_dump())
        return asdict(orchestrator.risk_parameters)

    @app.put("/settings/user")
    def update_user_settings(body: UserSettingsModel):
        orchestrator.user_settings = UserSettings(**body.model_dump())
        return asdict(orchestrator.user_settings)

    # Market data cache
    @app.get("/market-data")
    def market_data():
        return [
            {"key": key, "symbol": split_cache_key(key)[0], "timeframe": split_cache_key(key)[1], "candles": count}
            for key, count in orchestrator.market_data_service.summary().items()
        ]

    @app.post("/market-data")
    def refresh_market_data(body: MarketDataRefresh):
        key = orchestrator.market_data_service.refresh(body.symbol, body.timeframe, body.limit)
        return {"key": key, "candles": len(orchestrator.market_data_service.cache[key])}

    # Guided acquisition
    @app.get("/acquisition", response_model=AcquisitionState)
    def acquisition_state():
        return _acquisition_state(orchestrator)

    @app.post("/acquisition/start", response_model=AcquisitionState)
    def start_acquisition(body: StartAcquisitionRequest):
        orchestrator.select_strategies(body.strategies)
        orchestrator.acquisition.start()
        return _acquisition_state(orchestrator)

    @app.post("/acquisition/image")
    def submit_image(body: ImageSubmission):
        result = orchestrator.acquisition.submit_image(body.data_url)
        state = _acquisition_state(orchestrator).model_dump()
        state["result"] = result.value
        return state

    @app.post("/acquisition/reset", response_model=AcquisitionState)
    def reset_acquisition():
        orchestrator.acquisition.reset()
        return _acquisition_state(orchestrator)

    # Analysis
    @app.post("/analysis")
    def analysis(body: AnalysisBody):
        orchestrator.selected_market_data = body.market_data
        results = orchestrator.run_analysis()
        return {"aborted": results.is_aborted, "results": results.to_dict()}

    @app.get("/usage")
    def usage():
        return {"total": orchestrator.usage.total, "records": orchestrator.usage.records()}

    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(format='%(asctime)s - %(name)s - %(levelname)s - %(message)s', level=logging.INFO)
    uvicorn.run(create_app(), host="0.0.0.0", port=8001)
