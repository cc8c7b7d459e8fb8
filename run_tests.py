#!/usr/bin/env python3
"""
Test runner script for the Rental Marketplace API.
Runs the suite against in-memory SQLite with channel delivery recorded instead of sent.
"""

import os
import sys
import subprocess
import argparse


TEST_ENVIRONMENT = {
    "ENVIRONMENT": "testing",
    "TESTING": "true",
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "JWT_SECRET_KEY": "test-secret-key-for-testing-only-0123456789",
    "NOTIFICATIONS_DRY_RUN": "true",
    "SCHEDULER_ENABLED": "false",
}


def run_tests(test_args=None, coverage: bool = False) -> int:
    """Run pytest with the test environment and return its exit code."""
    command = [sys.executable, "-m", "pytest"]
    command.extend(test_args or ["tests/", "-v", "--tb=short"])
    if coverage:
        command.extend(["--cov=rental_api", "--cov-report=term-missing"])

    env = os.environ.copy()
    env.update(TEST_ENVIRONMENT)

    print(f"Running: {' '.join(command)}")
    return subprocess.run(command, env=env).returncode


def main():
    parser = argparse.ArgumentParser(description="Run tests for the Rental Marketplace API")
    parser.add_argument(
        "-k",
        dest="keyword",
        help="Only run tests matching the given keyword expression"
    )
    parser.add_argument(
        "--coverage",
        action="store_true",
        help="Report coverage for the rental_api package"
    )
    parser.add_argument(
        "test_args",
        nargs="*",
        help="Additional arguments to pass to pytest"
    )
    args = parser.parse_args()

    test_args = list(args.test_args)
    if args.keyword:
        test_args = (test_args or ["tests/", "-v", "--tb=short"]) + ["-k", args.keyword]

    try:
        code = run_tests(test_args or None, coverage=args.coverage)
    except KeyboardInterrupt:
        print("\nTests interrupted by user")
        return 1

    print("\nAll tests passed!" if code == 0 else "\nSome tests failed!")
    return code


if __name__ == "__main__":
    sys.exit(main())
