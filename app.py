#!/usr/bin/env python3
"""
RTB Router Node - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
This is the ONE executable entry point for a router node.

- Compatible with PM2 / systemd process management
- Can be started, stopped, and restarted safely
- Handles SIGINT / SIGTERM gracefully

============================================================
USAGE
============================================================
Direct execution:
    python app.py -I prod -N router1 -x exchanges.json

With PM2:
    pm2 start app.py --interpreter python --name router1 -- -I prod -N router1

Environment-based configuration:
    RTB_INSTALLATION=prod RTB_NODE_NAME=router1 python app.py

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
