#!/usr/bin/env python3
"""
Test runner script for UDP service discovery.

Wraps pytest with the suites used during development.
"""

import subprocess
import sys
from typing import Dict, List


SUITES: Dict[str, List[str]] = {
    "unit": ["tests/unit/"],
    "integration": ["tests/integration/"],
    "fuzzing": ["tests/fuzzing/"],
    "all": ["tests/"],
    "coverage": [
        "tests/unit/",
        "tests/integration/",
        "--cov=udp_discovery",
        "--cov-report=term-missing",
        "--cov-report=html:htmlcov",
        "--cov-fail-under=85",
    ],
    "shared": ["tests/unit/test_shared/"],
    "codec": ["tests/unit/test_discovery/", "tests/fuzzing/"],
    "server": ["tests/unit/test_server/"],
    "client": ["tests/unit/test_client/"],
}

DESCRIPTIONS = {
    "unit": "Run unit tests",
    "integration": "Run loopback integration tests",
    "fuzzing": "Run hypothesis fuzzing tests",
    "all": "Run all tests",
    "coverage": "Run unit and integration tests with coverage report",
    "shared": "Run shared module tests only",
    "codec": "Run message codec tests only",
    "server": "Run announcer and responder tests only",
    "client": "Run client and listener tests only",
}


def run_command(cmd: List[str]) -> int:
    """Run a command and return the exit code."""
    print(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd).returncode


def main() -> int:
    """Main test runner function."""
    if len(sys.argv) < 2 or sys.argv[1].lower() not in SUITES:
        if len(sys.argv) >= 2:
            print(f"Unknown command: {sys.argv[1]}")
        print("Usage: python run_tests.py <command> [pytest args...]")
        print("Commands:")
        for name, description in DESCRIPTIONS.items():
            print(f"  {name:<14} - {description}")
        return 1

    cmd = [sys.executable, "-m", "pytest"] + SUITES[sys.argv[1].lower()] + ["-v"] + sys.argv[2:]
    return run_command(cmd)


if __name__ == "__main__":
    sys.exit(main())
