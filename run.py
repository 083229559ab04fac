"""
Main CLI entry point for Railway
Usage: python run.py config/pipeline.yaml clean "  hello world  "
"""
import sys

from railway.cli import main


if __name__ == "__main__":
    sys.exit(main())
