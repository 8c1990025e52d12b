class SupervisorError(Exception):
    """Base class for everything the supervisor raises."""

    exhausted = False


class AttemptFailure(SupervisorError):
    """One launch attempt did not end with a ready server.

    The retry controller catches these and moves on to the next port. When no
    attempts are left the last one is re-raised unchanged with
    ``exhausted`` set to True.
    """

    def __init__(self, message, attempt=None):
        super().__init__(message)
        self.attempt = attempt


class LaunchFailure(AttemptFailure):
    """The bootstrap process could not be spawned or exited non-zero."""

    def __init__(self, message, attempt=None, returncode=None, output=''):
        super().__init__(message, attempt)
        self.returncode = returncode
        self.output = output


class LogDiscoveryFailure(AttemptFailure):
    """The bootstrap output did not announce a server log file."""


class ReadinessTimeout(AttemptFailure):
    """No success marker showed up in the server log before the deadline."""

    def __init__(self, message, attempt=None, timeout=None):
        super().__init__(message, attempt)
        self.timeout = timeout
