import threading
from logging import getLogger

from .errors import ReadinessTimeout


logger = getLogger(__name__)


DEFAULT_READINESS_TIMEOUT = 60.0


class ReadinessSignal:
    """One-shot completion token.

    ``fire`` may be called from any thread any number of times, only the
    first call has an effect. ``wait`` blocks until fired or until the
    timeout expires.
    """

    def __init__(self, timeout=DEFAULT_READINESS_TIMEOUT):
        self.timeout = timeout
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._fired = False
        self.matched_line = None

    def fire(self, line=None) -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            self.matched_line = line
        self._event.set()
        return True

    @property
    def fired(self):
        return self._event.is_set()

    def wait(self, timeout=None) -> bool:
        if timeout is None:
            timeout = self.timeout
        return self._event.wait(timeout)


class ReadinessDetector:
    """Line callback shared by the capturers of one attempt.

    Every line goes to the diagnosis buffer first and is then checked against
    the success markers; the first match fires the attempt's signal.
    """

    def __init__(self, diagnosis, success_markers, timeout=DEFAULT_READINESS_TIMEOUT):
        self.diagnosis = diagnosis
        self.success_markers = tuple(success_markers)
        self.signal = ReadinessSignal(timeout)

    def is_success_line(self, line):
        return any(marker in line for marker in self.success_markers)

    def __call__(self, line):
        self.diagnosis.append(line)
        if self.is_success_line(line) and self.signal.fire(line):
            logger.debug(f'readiness marker found: {line}')

    def wait_ready(self, attempt=None):
        if self.signal.wait():
            return
        raise ReadinessTimeout(
            f'server did not report readiness within {self.signal.timeout} seconds',
            attempt=attempt,
            timeout=self.signal.timeout,
        )
