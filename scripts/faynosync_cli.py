#!/usr/bin/env python3
"""
Run the faynosync CLI from a source checkout.

Usage:
    python scripts/faynosync_cli.py init
    python scripts/faynosync_cli.py config set server https://updates.example.com
    python scripts/faynosync_cli.py upload --app demo --file dist/demo.zip --version 1.2.0
    git log -1 --format=%B | python scripts/faynosync_cli.py upload --file app.zip --changelog-stdin
"""

import sys
from pathlib import Path

# Add project root to path for imports (before other imports)
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from faynosync.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
