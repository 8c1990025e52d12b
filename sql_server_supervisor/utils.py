import os
import random
import signal
import subprocess
import threading
from logging import getLogger

logger = getLogger(__name__)


class GracefulKiller:
    kill_now = False

    def __init__(self):
        signal.signal(signal.SIGINT, self.exit_gracefully)
        signal.signal(signal.SIGTERM, self.exit_gracefully)

    def exit_gracefully(self, signum, frame):
        self.kill_now = True


class OutputCapturer(threading.Thread):
    """Reads a binary stream line by line and hands every line to a callback.

    Lines are decoded as UTF-8 and passed on without the trailing newline.
    The thread ends when the stream is closed; read errors end it the same
    way and are only logged at debug level.
    """

    def __init__(self, stream, callback, name=None, encoding='utf-8'):
        super().__init__(daemon=True, name=name or 'OutputCapturer')
        self.stream = stream
        self.callback = callback
        self.encoding = encoding

    def run(self):
        try:
            for raw_line in iter(self.stream.readline, b''):
                line = raw_line.decode(self.encoding, errors='replace')
                if line.endswith('\n'):
                    line = line[:-1]
                    if line.endswith('\r'):
                        line = line[:-1]
                self.callback(line)
        except Exception as e:
            logger.debug(f'{self.name}: stopped reading output: {e}')


def execute_and_get_output(command, extra_env=None, redirect_stderr=True):
    """Run ``command`` to completion and return ``(returncode, output)``.

    ``extra_env`` is layered over the current environment. With
    ``redirect_stderr`` the error stream is folded into the returned output.
    """
    env = os.environ.copy()
    if extra_env:
        env.update(extra_env)

    result = subprocess.run(
        list(command),
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT if redirect_stderr else subprocess.DEVNULL,
        encoding='utf-8',
        errors='replace',
    )
    return result.returncode, result.stdout or ''


def terminate_process(process, timeout=5.0):
    if process is None or process.poll() is not None:
        return
    try:
        process.terminate()
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f'Process {process.pid} did not respond to SIGTERM, using SIGKILL')
            process.kill()
            process.wait()
    except Exception as e:
        logger.warning(f'Error stopping process {process.pid}: {e}')


def pick_random_port(low=10000, span=10000):
    return low + random.randrange(span)
