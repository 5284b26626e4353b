import pytest

from fakes import FIXED_MS, FakeSession
from services.config import AppConfig, LLMConfig, MexcConfig
from services.mexc_service import MexcClient
from services.models import MexcCredentials, StrategyLogic


@pytest.fixture
def credentials():
    return MexcCredentials(api_key="mx0vglTESTKEY12345", secret_key="s3cr3t-key-for-tests-0123456789")


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(session):
    return MexcClient(MexcConfig(base_url="https://api.mexc.com"), session=session, clock=lambda: FIXED_MS)


@pytest.fixture
def strategies():
    return {
        "trend": StrategyLogic(name="Trend Rider", prompt="Buy pullbacks when ADX > 25."),
        "range": StrategyLogic(name="Range Fader", prompt="Fade the range extremes with RSI."),
    }


@pytest.fixture
def app_config(credentials):
    return AppConfig(mexc=MexcConfig(), llm=LLMConfig(model="test-model", analysis_model="test-model"),
                     credentials=credentials)
