import threading
from logging import getLogger


logger = getLogger(__name__)


class DiagnosisBuffer:
    """Append-only log of everything seen while bringing the server up.

    Shared by the control thread and the output capturer threads of every
    attempt. Each append is atomic; lines from one appender keep their order,
    lines from different appenders may interleave.
    """

    def __init__(self):
        self._lines = []
        self._lock = threading.Lock()

    def append(self, line: str):
        with self._lock:
            self._lines.append(line)

    def extend(self, lines):
        lines = list(lines)
        with self._lock:
            self._lines.extend(lines)

    def add_attempt_header(self, attempt):
        self.extend([
            '',
            f'### Attempt {attempt.attempt_number} ###',
            f'SQLServer command line: {list(attempt.command)}',
            f'Listening port: {attempt.port}',
        ])

    def snapshot(self):
        with self._lock:
            return list(self._lines)

    def __len__(self):
        with self._lock:
            return len(self._lines)

    def format_report(self, title):
        body = '\n'.join(self.snapshot())
        return (
            f'\n=====================================\n'
            f'{title} failure output\n'
            f'=====================================\n'
            f'{body}\n'
            f'=========================================\n'
            f'End {title} failure output\n'
            f'=========================================\n'
        )

    def dump(self, title):
        logger.error(self.format_report(title))
