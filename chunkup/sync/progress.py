"""Transfer speed and time remaining estimation"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Union
import logging

logger = logging.getLogger(__name__)


@dataclass
class ProgressSnapshot:
    """Progress as reported to listeners"""
    progress: float = 0.0
    uploaded_size: int = 0
    session_uploaded_size: int = 0
    average_speed: int = 0
    time_remaining: Union[int, float] = math.inf

    def to_event(self) -> Dict:
        return {
            'progress': self.progress,
            'uploadedSize': self.uploaded_size,
            'averageSpeed': self.average_speed,
            'timeRemaining': self.time_remaining
        }


class ProgressEstimator:
    """
    Derives throughput and ETA from chunk confirmations
    uploaded_size survives pause/resume; the speed window restarts on every resume
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.size_need_send = 0
        self.reset()

    def reset(self):
        self.snapshot = ProgressSnapshot()
        self.start_time = self.clock()

    def start_window(self):
        """Restart speed measurement, called on start and on every resume"""
        self.start_time = self.clock()
        self.snapshot.session_uploaded_size = 0

    def update(self, length: int) -> ProgressSnapshot:
        """Account one confirmed chunk of length bytes"""
        s = self.snapshot
        s.uploaded_size += length
        s.session_uploaded_size += length

        elapsed = self.clock() - self.start_time
        s.average_speed = int(s.session_uploaded_size / elapsed) if elapsed > 0 else 0

        remaining = max(self.size_need_send - s.uploaded_size, 0)
        s.time_remaining = remaining // s.average_speed if s.average_speed else math.inf

        if self.size_need_send > 0:
            s.progress = round(min(s.uploaded_size / self.size_need_send, 1.0), 2)
        else:
            s.progress = 1.0

        logger.debug(f"Progress {s.progress:.2f}: {s.uploaded_size}/{self.size_need_send} bytes, "
                     f"{s.average_speed} B/s")
        return s
