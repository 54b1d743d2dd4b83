from __future__ import annotations

import math
import shutil
from datetime import datetime
from typing import Optional


def have_exe(name: str) -> bool:
    return shutil.which(name) is not None


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def safe_int(x, default: int = 0) -> int:
    try:
        return int(str(x), 0)
    except (TypeError, ValueError):
        return default


def _fmt_ms(secs: int) -> str:
    m, s = divmod(secs, 60)
    return f"{m:02d}:{s:02d}"


def _fmt_hms(secs: int) -> str:
    h, rem = divmod(secs, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def format_clock(pos_sec: float, dur_sec: float) -> str:
    """Both sides switch to H:M:S together once the recording passes an hour."""
    pos = int(pos_sec) if math.isfinite(pos_sec) and pos_sec > 0 else 0
    dur = int(dur_sec) if math.isfinite(dur_sec) and dur_sec > 0 else 0
    if dur >= 3600:
        return f"{_fmt_hms(pos)} / {_fmt_hms(dur)}"
    return f"{_fmt_ms(pos)} / {_fmt_ms(dur)}"


def timestamp_suffix(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return now.strftime("%Y%m%d_%H%M%S")
