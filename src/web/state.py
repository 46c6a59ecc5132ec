import threading
import time
from typing import Optional

from models.status import DetectionStatus


class StatusBoard:
    """
    Latest DetectionStatus snapshot shared between the capture loop and the
    web server thread.

    The capture loop publishes; request handlers only read copies, never the
    session itself.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status = DetectionStatus()
        self._updated_at: Optional[float] = None
        self._started_at = time.time()

    def publish(self, status: DetectionStatus):
        with self._lock:
            self._status = status
            self._updated_at = time.time()

    def snapshot(self) -> DetectionStatus:
        with self._lock:
            return DetectionStatus.from_dict(self._status.to_dict())

    @property
    def updated_at(self) -> Optional[float]:
        with self._lock:
            return self._updated_at

    @property
    def uptime_seconds(self) -> int:
        return int(time.time() - self._started_at)
