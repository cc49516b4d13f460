#!/usr/bin/env python
"""
Test runner for the methylset store using Python's unittest framework.

Discovers and executes all tests in the tests/ directory.

Usage:
    python run_tests.py

Exit Status:
    0: All tests passed
    Non-zero: One or more tests failed
"""

import sys
import unittest
import os

def main():
    """Main entry point for the test runner."""
    script_dir = os.path.dirname(os.path.abspath(__file__))

    loader = unittest.TestLoader()
    start_dir = os.path.join(script_dir, 'tests')
    suite = loader.discover(start_dir, pattern='test_*.py')

    runner = unittest.TextTestRunner(
        verbosity=2,
        stream=sys.stdout,
        descriptions=True,
        failfast=False
    )

    print("methylset - Test Suite")
    print("=" * 50)
    result = runner.run(suite)

    print("\n" + "=" * 50)
    print(f"Tests run: {result.testsRun}")
    print(f"Failures: {len(result.failures)}")
    print(f"Errors: {len(result.errors)}")
    print(f"Skipped: {len(result.skipped)}")

    if result.wasSuccessful():
        print("All tests passed!")
        return 0
    else:
        print("Some tests failed!")
        return 1

if __name__ == "__main__":
    sys.exit(main())
