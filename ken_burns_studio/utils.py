"""Small helpers shared by the export pipeline."""
from __future__ import annotations

import time


def ms_timestamp() -> int:
    """Milliseconds since the epoch, used to keep export names unique."""
    return int(time.time() * 1000)
