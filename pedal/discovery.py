from __future__ import annotations

import logging
import os
from typing import Callable, Optional, Sequence

from models import DeviceInfo, PathCandidate, PedalCandidate, PedalError, VidPidCandidate
from pedal.devices import PedalHandle

logger = logging.getLogger(__name__)


def _try_open(open_device: Callable[[str], PedalHandle], path: str) -> Optional[PedalHandle]:
    try:
        return open_device(path)
    except (OSError, PedalError) as e:
        logger.debug("Failed to open %s: %s", path, e)
        return None


def discover(
    candidates: Sequence[PedalCandidate],
    devices: Sequence[DeviceInfo],
    open_device: Callable[[str], PedalHandle],
    exists: Callable[[str], bool] = os.path.exists,
) -> Optional[PedalHandle]:
    """
    Open the first device matching a candidate, trying candidates in order.

    Candidate order is the priority: a device matching the first candidate
    wins even if it was enumerated after a device matching a later one.
    """
    for candidate in candidates:
        if isinstance(candidate, VidPidCandidate):
            for info in devices:
                if info.vendor != candidate.vendor or info.product != candidate.product:
                    continue
                handle = _try_open(open_device, info.path)
                if handle is not None:
                    return handle
        elif isinstance(candidate, PathCandidate):
            if exists(candidate.path):
                handle = _try_open(open_device, candidate.path)
                if handle is not None:
                    return handle
    return None
