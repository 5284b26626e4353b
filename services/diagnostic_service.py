"""MEXC connectivity and authentication diagnostics.

Every check runs regardless of earlier failures so one pass gives the full
picture. Nothing here gates the client; it only informs the user.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .errors import ExchangeAPIError, OracleError
from .mexc_service import MexcClient
from .models import MexcCredentials
from .signature_service import build_query_string, sign

logger = logging.getLogger(__name__)

PROBE_SYMBOL = "BTCUSDT"
PROBE_RECV_WINDOW = 5000
API_KEY_PREFIX = "mx0"
MIN_SECRET_LENGTH = 20


@dataclass
class DiagnosticCheck:
    name: str
    passed: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DiagnosticReport:
    success: bool
    tests: List[DiagnosticCheck]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _parse_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class MexcDiagnostics:
    """Runs the fixed sequence of connectivity checks against a MexcClient."""

    def __init__(self, client: MexcClient):
        self.client = client

    def run(self, credentials: Optional[MexcCredentials]) -> DiagnosticReport:
        api_key = credentials.api_key if credentials else ""
        secret_key = credentials.secret_key if credentials else ""

        tests = [
            self.check_public_access(),
            self.check_api_key_format(api_key),
            self.check_secret_key(secret_key),
            self.check_signature(secret_key),
            self.check_authenticated_call(credentials),
        ]
        success = all(t.passed for t in tests)
        logger.info(f"MEXC diagnostics finished: {sum(t.passed for t in tests)}/{len(tests)} passed")
        return DiagnosticReport(success=success, tests=tests)

    def check_public_access(self) -> DiagnosticCheck:
        name = "Public API Access"
        try:
            price = self.client.get_price(PROBE_SYMBOL)
        except ExchangeAPIError as e:
            message = ("Network error - Cannot reach MEXC API" if e.status_code is None
                       else "Cannot reach MEXC API")
            return DiagnosticCheck(name, False, message,
                                   {"status": e.status_code, "error": e.body})
        return DiagnosticCheck(name, True, f"Can reach MEXC API. BTC Price: ${price}",
                               {"symbol": PROBE_SYMBOL, "price": price})

    def check_api_key_format(self, api_key: str) -> DiagnosticCheck:
        valid = bool(api_key) and api_key.startswith(API_KEY_PREFIX)
        message = ("API Key format looks correct" if valid
                   else f'API Key should start with "{API_KEY_PREFIX}"')
        return DiagnosticCheck("API Key Format", valid, message,
                               {"apiKey": f"{api_key[:10]}..." if api_key else None})

    def check_secret_key(self, secret_key: str) -> DiagnosticCheck:
        valid = bool(secret_key) and len(secret_key) > MIN_SECRET_LENGTH
        message = "Secret Key provided" if valid else "Secret Key missing or too short"
        return DiagnosticCheck("Secret Key", valid, message,
                               {"length": len(secret_key) if secret_key else 0})

    def check_signature(self, secret_key: str) -> DiagnosticCheck:
        name = "Signature Generation"
        query_string = build_query_string({"recvWindow": PROBE_RECV_WINDOW, "timestamp": self.client.clock()})
        try:
            signature = sign(secret_key, query_string)
        except OracleError as e:
            return DiagnosticCheck(name, False, "Failed to generate signature", {"error": str(e)})
        return DiagnosticCheck(name, True, "Can generate HMAC-SHA256 signatures",
                               {"signatureLength": len(signature)})

    def check_authenticated_call(self, credentials: Optional[MexcCredentials]) -> DiagnosticCheck:
        name = "Authenticated API Call"
        params = {"recvWindow": PROBE_RECV_WINDOW, "timestamp": self.client.clock()}
        try:
            url = self.client.signed_url("/api/v3/account", credentials, params)
            response = self.client.session.request(
                "GET", url,
                headers=self.client.auth_headers(credentials),
                timeout=self.client.config.timeout,
            )
        except (OracleError, requests.RequestException) as e:
            return DiagnosticCheck(name, False, "Failed to make authenticated request", {"error": str(e)})

        signature = url.rsplit("signature=", 1)[-1]
        details = {
            "status": response.status_code,
            "statusText": response.reason,
            "response": _parse_body(response),
            "url": url.replace(signature, "SIGNATURE_HIDDEN"),
        }
        if response.ok:
            return DiagnosticCheck(name, True, "Successfully authenticated with MEXC API", details)
        return DiagnosticCheck(
            name, False, f"Authentication failed: {response.status_code} {response.reason}", details
        )
