#!/usr/bin/env python3
"""
MEXC API diagnostics

Runs every connectivity and authentication check and prints a full report,
even when early checks fail.

Usage:
    python diagnose_mexc.py            # credentials from .env
    python diagnose_mexc.py --json     # machine-readable report
"""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from services.config import AppConfig
from services.diagnostic_service import DiagnosticReport, MexcDiagnostics
from services.mexc_service import MexcClient


class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    BOLD = '\033[1m'
    END = '\033[0m'


def print_header(text: str):
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.END}\n")


def print_success(text: str):
    print(f"{Colors.GREEN}✅ {text}{Colors.END}")


def print_error(text: str):
    print(f"{Colors.RED}❌ {text}{Colors.END}")


def print_info(text: str):
    print(f"{Colors.BLUE}ℹ️  {text}{Colors.END}")


def print_report(report: DiagnosticReport):
    print_header("MEXC API Diagnostics")
    for index, check in enumerate(report.tests, 1):
        line = f"Test {index}: {check.name} - {check.message}"
        if check.passed:
            print_success(line)
        else:
            print_error(line)
            for key, value in check.details.items():
                print_info(f"   {key}: {value}")

    print_header("SUMMARY")
    passed = sum(1 for check in report.tests if check.passed)
    if report.success:
        print_success(f"All {passed} checks passed")
    else:
        print_error(f"{passed}/{len(report.tests)} checks passed")


def main() -> int:
    parser = argparse.ArgumentParser(description="Diagnose MEXC API connectivity and authentication")
    parser.add_argument("--json", action="store_true", help="print the report as JSON")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(format='%(asctime)s - %(name)s - %(levelname)s - %(message)s', level=logging.WARNING)

    config = AppConfig.from_env()
    if config.credentials is None:
        print_info("MEXC_API_KEY / MEXC_API_SECRET not set; credential checks will fail")

    report = MexcDiagnostics(MexcClient(config.mexc)).run(config.credentials)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print_report(report)

    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
