"""
Script to run the ETL pipeline for the configured sources

Same options as the etl-run console script:
    python scripts/run_etl.py --mode api --dry-run
"""

import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from ingestion.cli import main


if __name__ == "__main__":
    sys.exit(main())
