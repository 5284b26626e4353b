"""Main orchestrator service to coordinate all trading services."""

import logging
from typing import Dict, List, Optional, Sequence

from prompt import STRATEGY_LOGIC

from .acquisition_service import AcquisitionStateMachine
from .analysis_service import AnalysisDispatcher
from .config import AppConfig
from .diagnostic_service import DiagnosticReport, MexcDiagnostics
from .errors import ConfigurationError
from .execution_service import ExecutionOutcome, TradeExecutor
from .llm_service import LLMService
from .market_data_service import MarketDataService
from .mexc_service import MexcClient
from .models import AccountInfo, Balance, MexcCredentials, RiskParameters, StrategyLogic, UserSettings
from .results import AnalysisResults
from .usage_service import TokenUsageLog

logger = logging.getLogger(__name__)


class TradingOrchestrator:
    """Owns one instance of each service, all built from the same AppConfig."""

    def __init__(
        self,
        config: AppConfig,
        mexc_client: Optional[MexcClient] = None,
        llm_service: Optional[LLMService] = None,
        market_data_service: Optional[MarketDataService] = None,
        strategies: Optional[Dict[str, StrategyLogic]] = None,
    ):
        self.config = config
        self.strategies = strategies if strategies is not None else dict(STRATEGY_LOGIC)
        self.usage = TokenUsageLog()

        self.mexc_client = mexc_client or MexcClient(config.mexc)
        self.llm_service = llm_service or LLMService(config.llm)
        self.market_data_service = market_data_service or MarketDataService()

        self.executor = TradeExecutor(self.mexc_client)
        self.diagnostics = MexcDiagnostics(self.mexc_client)
        self.acquisition = AcquisitionStateMachine(
            open_chat=self.llm_service.open_chat,
            strategies=self.strategies,
            usage_logger=self.usage,
            retain_rejected_images=config.retain_rejected_images,
        )
        self.dispatcher = AnalysisDispatcher(self.llm_service, self.strategies, usage_logger=self.usage)

        self.user_settings = UserSettings()
        self.risk_parameters = RiskParameters()
        self.selected_market_data: List[str] = []

    @property
    def credentials(self) -> MexcCredentials:
        if self.config.credentials is None:
            raise ConfigurationError("MEXC API credentials not configured.")
        return self.config.credentials

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------

    def account_info(self) -> AccountInfo:
        return self.mexc_client.get_account_info(self.credentials)

    def balances(self) -> List[Balance]:
        return self.account_info().non_zero_balances()

    def authorized_symbols(self) -> List[str]:
        return self.mexc_client.get_authorized_symbols(self.credentials)

    def execute_trade(self, trade, symbol: str = "BTCUSDT") -> ExecutionOutcome:
        account = self.account_info()
        balance = account.free_balance(self.config.mexc.quote_asset)
        return self.executor.execute(self.config.credentials, trade, symbol, balance, self.risk_parameters)

    def run_diagnostics(self) -> DiagnosticReport:
        return self.diagnostics.run(self.config.credentials)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def select_strategies(self, strategy_keys: Sequence[str]):
        self.acquisition.select_strategies(strategy_keys)

    def run_analysis(self) -> AnalysisResults:
        """Send the collected images and selected cached series for analysis."""
        return self.dispatcher.run(
            self.acquisition.selected_strategies,
            self.user_settings,
            self.acquisition.images,
            self.market_data_service.select(self.selected_market_data),
        )
