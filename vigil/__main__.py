"""Entry point for `python -m vigil`.

Usage:
    python -m vigil
    uv run python -m vigil
"""

from __future__ import annotations

import asyncio

from vigil.app import main

asyncio.run(main())
