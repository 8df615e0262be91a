"""
Storage Rent Bot - Unified CLI Entrypoint
=========================================
Single entrypoint with subcommands for the rent claiming bot.

Commands:
    python main.py run
    python main.py --dry-run once
    python main.py once --wait
    python main.py status
    python main.py cleanup --days 30
"""

import os
import sys

# Allow running from a source checkout without installing the package
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "src"))

from rentbot.modules.storage_rent.cli import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
