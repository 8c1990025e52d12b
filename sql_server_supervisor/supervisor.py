import os
import re
import shutil
import subprocess
import tempfile
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from pathlib import Path

from .config import Settings
from .connection import ConnectionDescriptor, current_user
from .diagnosis import DiagnosisBuffer
from .errors import AttemptFailure, LaunchFailure, LogDiscoveryFailure, SupervisorError
from .launcher import LaunchAttempt, ProcessLauncher, find_log_path
from .readiness import ReadinessDetector
from .utils import OutputCapturer, pick_random_port, terminate_process


logger = getLogger(__name__)


SCRATCH_DIR_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}-")


def is_scratch_dir(path):
    """True for directories named like the ones ``SqlServerSupervisor`` creates."""
    return bool(SCRATCH_DIR_RE.match(os.path.basename(os.path.normpath(str(path)))))


class Status(Enum):
    IDLE = 'idle'
    ATTEMPTING = 'attempting'
    RUNNING = 'running'
    FAILED = 'failed'
    STOPPED = 'stopped'


@dataclass
class ServerHandle:
    name: str
    listening_port: int = 0
    log_path: Path = None
    tail_process: subprocess.Popen = None
    attempt: LaunchAttempt = None


class SqlServerSupervisor:
    """Brings an external SQL server up for tests and tears it down again.

    ``start`` launches the server through its bootstrap script and waits until
    the server log (followed with ``tail -f``) shows one of the success
    markers. Failed attempts are retried on the next port; when every attempt
    failed the collected output is dumped and the last failure is re-raised.
    ``stop`` is safe to call at any time, any number of times.

    Only the thread that calls ``start``/``stop`` touches ``handle``.
    """

    def __init__(self, config: Settings, launcher=None, scratch_dir=None):
        self.config = config
        self.server_settings = config.server
        self.supervisor_settings = config.supervisor
        if scratch_dir:
            os.makedirs(scratch_dir, exist_ok=True)
            self.owns_scratch_dir = is_scratch_dir(scratch_dir)
        else:
            self.owns_scratch_dir = True
            scratch_dir = tempfile.mkdtemp(
                prefix=f'{uuid.uuid4()}-',
                dir=self.supervisor_settings.scratch_dir,
            )
        self.scratch_dir = str(scratch_dir)
        self.diagnosis = DiagnosisBuffer()
        self.launcher = launcher or ProcessLauncher(
            self.server_settings, self.scratch_dir, self.diagnosis,
        )
        self.handle = ServerHandle(name=self.server_settings.name)
        self.attempts: list[LaunchAttempt] = []
        self.status = Status.IDLE

    @property
    def listening_port(self):
        return self.handle.listening_port

    @property
    def log_path(self):
        return self.handle.log_path

    def start(self):
        settings = self.supervisor_settings
        settings.validate()
        port = settings.base_port or pick_random_port()
        last_error = None

        for attempt_number in range(settings.max_attempts):
            if attempt_number > 0:
                port += 1
                self.stop()
            self.status = Status.ATTEMPTING
            try:
                self.try_to_start(port, attempt_number)
            except AttemptFailure as e:
                last_error = e
                logger.warning(
                    f'SQLServer attempt {attempt_number} on port {port} failed: '
                    f'{type(e).__name__}: {e}'
                )
                continue
            self.status = Status.RUNNING
            logger.info(f'SQLServer started successfully on port {port}')
            return self.handle

        self.status = Status.FAILED
        self.release()
        self.dump_server_logs()
        last_error.exhausted = True
        raise last_error

    def try_to_start(self, port, attempt_number):
        handle = self.handle
        handle.log_path = None
        handle.tail_process = None
        handle.listening_port = port

        try:
            attempt, output = self.launcher.launch(port, attempt_number)
        except AttemptFailure as e:
            self._record_attempt(e.attempt)
            raise
        self._record_attempt(attempt)

        log_path = find_log_path(output, self.server_settings.log_file_mask, attempt)
        handle.log_path = log_path

        # the server creates its log lazily, tail needs an existing file
        try:
            log_path.touch(exist_ok=True)
        except OSError as e:
            raise LogDiscoveryFailure(f'Failed to create log file {log_path}: {e}', attempt=attempt)

        detector = ReadinessDetector(
            self.diagnosis,
            self.server_settings.success_markers,
            timeout=self.supervisor_settings.readiness_timeout,
        )
        handle.tail_process = self.start_log_tailing(log_path, detector, attempt)
        detector.wait_ready(attempt)

    def start_log_tailing(self, log_path, callback, attempt=None):
        # "-n +0" makes tail replay the file from its first line
        command = list(self.supervisor_settings.tail_command) + [str(log_path.resolve())]
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise LaunchFailure(f'Failed to start log tailing {command}: {e}', attempt=attempt)

        OutputCapturer(process.stdout, callback, name=f'LogTail-out-{process.pid}').start()
        OutputCapturer(process.stderr, callback, name=f'LogTail-err-{process.pid}').start()
        return process

    def _record_attempt(self, attempt):
        if attempt is None:
            return
        self.attempts.append(attempt)
        self.handle.attempt = attempt

    def stop(self):
        # the stop script kills asynchronously, give it time to finish
        self.launcher.stop_server()
        time.sleep(self.supervisor_settings.stop_grace_period)

        handle = self.handle
        if handle.log_path is not None and os.path.exists(handle.log_path):
            try:
                os.remove(handle.log_path)
            except OSError as e:
                logger.warning(f'Failed to remove {handle.log_path}: {e}')
        handle.log_path = None

        terminate_process(handle.tail_process)
        handle.tail_process = None

        if self.status == Status.RUNNING:
            self.status = Status.STOPPED

    def release(self):
        """Stop following the log but leave the server running."""
        terminate_process(self.handle.tail_process)
        self.handle.tail_process = None

    def restart(self):
        logger.info('restarting SQLServer')
        self.stop()
        return self.start()

    def close(self):
        self.stop()
        if not self.owns_scratch_dir:
            logger.info(f'leaving {self.scratch_dir} in place, it was not created by the supervisor')
            return
        shutil.rmtree(self.scratch_dir, ignore_errors=True)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def connection_descriptor(self) -> ConnectionDescriptor:
        if self.status != Status.RUNNING:
            raise SupervisorError(f'SQLServer is not running (status: {self.status.value})')
        return ConnectionDescriptor(
            port=self.handle.listening_port,
            user=current_user(),
            query_mode=self.server_settings.query_mode,
            ssl=self.server_settings.ssl,
        )

    def get_status(self):
        return {
            'name': self.handle.name,
            'status': self.status.value,
            'listening_port': self.handle.listening_port,
            'log_path': str(self.handle.log_path) if self.handle.log_path else None,
            'attempts': len(self.attempts),
        }

    def dump_server_logs(self):
        self.diagnosis.dump(self.handle.name)
