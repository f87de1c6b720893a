"""Entry point for `python -m kubeconverge`.

Usage:
    python -m kubeconverge
"""

from __future__ import annotations

import asyncio

from kubeconverge.app import main

asyncio.run(main())
