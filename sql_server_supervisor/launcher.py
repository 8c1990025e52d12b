import time
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path

from .config import ServerSettings
from .errors import LaunchFailure, LogDiscoveryFailure
from .utils import execute_and_get_output


logger = getLogger(__name__)


PORT_CONF = 'spark.sql.server.port'
VERSION_CONF = 'spark.sql.server.version'
SSL_ENABLED_CONF = 'spark.sql.server.ssl.enabled'
SINGLE_SESSION_CONF = 'spark.sql.server.singleSession'
PSQL_ENABLED_CONF = 'spark.sql.server.psql.enabled'


@dataclass(frozen=True)
class LaunchAttempt:
    attempt_number: int
    port: int
    command: tuple
    started_at: float = field(default_factory=time.time)


def conf_value(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def find_log_path(output, log_file_mask, attempt=None) -> Path:
    """Return the server log path announced in the bootstrap output.

    The announcing line looks like ``<log_file_mask><path>``.
    """
    for line in output.splitlines():
        if log_file_mask in line:
            path = line.split(log_file_mask, 1)[1].rstrip('\r\n')
            if path.strip():
                return Path(path)
    raise LogDiscoveryFailure('Failed to find SQLServer log file.', attempt=attempt)


class ProcessLauncher:
    """Runs the start and stop scripts of one server identity."""

    def __init__(self, settings: ServerSettings, scratch_dir, diagnosis):
        self.settings = settings
        self.scratch_dir = str(scratch_dir)
        self.diagnosis = diagnosis

    def environment(self):
        return {
            # excludes log4j.properties from test directories
            'SPARK_TESTING': '0',
            # keeps spark-class happy
            'SPARK_SQL_TESTING': '1',
            # one pid directory per supervisor so that instances can coexist
            'SPARK_PID_DIR': self.scratch_dir,
            'SPARK_IDENT_STRING': self.settings.name,
        }

    def build_command(self, port):
        settings = self.settings
        command = [
            settings.start_script,
            '--master', settings.master,
            '--driver-class-path', self.scratch_dir,
            '--driver-java-options', '-Dlog4j.debug',
            '--conf', 'spark.ui.enabled=false',
            '--conf', f'spark.sql.warehouse.dir={self.scratch_dir}/spark-warehouse',
            '--conf', f'{PORT_CONF}={port}',
            '--conf', f'{VERSION_CONF}={settings.pg_version}',
            '--conf', f'{SSL_ENABLED_CONF}={conf_value(settings.ssl)}',
            '--conf', f'{SINGLE_SESSION_CONF}={conf_value(settings.single_session)}',
            '--conf', f'{PSQL_ENABLED_CONF}={conf_value(settings.psql_enabled)}',
        ]
        for key, value in settings.options.items():
            command += ['--conf', f'{key}={conf_value(value)}']
        return command

    def launch(self, port, attempt_number):
        """Run the bootstrap script for ``port``.

        Returns the ``LaunchAttempt`` and the combined bootstrap output. The
        attempt header goes to the diagnosis buffer before anything is spawned.
        """
        attempt = LaunchAttempt(
            attempt_number=attempt_number,
            port=port,
            command=tuple(self.build_command(port)),
        )
        self.diagnosis.add_attempt_header(attempt)
        logger.info(f'Trying to start SQLServer: port={port}, attempt={attempt_number}')

        try:
            returncode, output = execute_and_get_output(attempt.command, extra_env=self.environment())
        except OSError as e:
            raise LaunchFailure(f'Failed to run {self.settings.start_script}: {e}', attempt=attempt)

        logger.info(f'COMMAND: {list(attempt.command)}')
        logger.info(f'OUTPUT: {output}')

        if returncode != 0:
            self.diagnosis.extend(output.splitlines())
            raise LaunchFailure(
                f'{self.settings.start_script} exited with code {returncode}',
                attempt=attempt,
                returncode=returncode,
                output=output,
            )
        return attempt, output

    def stop_server(self):
        """Run the stop script for this identity. Never raises."""
        command = [self.settings.stop_script]
        try:
            returncode, output = execute_and_get_output(command, extra_env=self.environment())
        except OSError as e:
            logger.warning(f'Failed to run {self.settings.stop_script}: {e}')
            return False
        if returncode != 0:
            logger.warning(f'{self.settings.stop_script} exited with code {returncode}: {output}')
            return False
        return True
