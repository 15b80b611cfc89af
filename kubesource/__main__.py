"""Entry point for `python -m kubesource`.

Usage:
    python -m kubesource
    kubesource
"""

from __future__ import annotations

import asyncio

from kubesource.app import main


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
