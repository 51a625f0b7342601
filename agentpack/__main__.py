"""
Main entry point for running agentpack as a module.

Usage:
    python -m agentpack <command> [options]
"""

from .cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())
