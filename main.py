"""
Entry point for placement-engine.

Run with:
    python main.py --help
    python main.py take --config data/placement_config.yaml --bank data/question_bank.yaml
"""
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from src.cli.placement_cli import run

if __name__ == "__main__":
    run()
