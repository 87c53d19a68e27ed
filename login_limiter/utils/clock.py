"""Wall-clock helpers shared by the engine and stores."""

from __future__ import annotations

import time


def epoch_ms() -> int:
    """Current time in epoch milliseconds, the unit all attempt scores use."""
    return int(time.time() * 1000)
