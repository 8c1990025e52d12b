"""
SQL Server Supervisor Configuration Management

This module provides configuration classes for launching an external SQL server
through its start/stop scripts and for tuning the retry and readiness behaviour
of the supervisor.

Classes:
    ServerSettings: What to launch and how (scripts, flags, markers)
    SupervisorSettings: Retry, timeout and shutdown tuning
    Settings: Main configuration class that orchestrates all settings

Key Features:
    - YAML-based configuration loading
    - Environment variable overrides for script paths and identity
    - Type validation and error handling
"""

import os
from dataclasses import dataclass, field

import yaml


DEFAULT_LOG_FILE_MASK = 'starting org.apache.spark.sql.server.SQLServer, logging to '

DEFAULT_SUCCESS_MARKERS = [
    'PgService: Start running the SQL server',
    "Recovery mode 'ZOOKEEPER' enabled",
]

QUERY_MODES = ['extended', 'extendedForPrepared', 'extendedCacheEverything', 'simple']


def stype(obj):
    """Get the simple type name of an object.

    Example:
        >>> stype([1, 2, 3])
        'list'
    """
    return type(obj).__name__


@dataclass
class ServerSettings:
    """Launch configuration of the supervised server.

    Attributes:
        name: Identity tag; the stop script only touches the instance with this tag
        start_script: Executable that bootstraps the server and exits
        stop_script: Executable that stops the server with the same identity
        master: Value passed to ``--master``
        pg_version: Protocol version the server should announce
        ssl: Enable TLS on the server socket
        single_session: Run the server in single-session mode
        query_mode: Client query mode exposed through the connection descriptor
        psql_enabled: Enable the psql protocol gateway
        options: Extra ``--conf key=value`` pairs appended after the fixed ones
        log_file_mask: Prefix of the bootstrap output line announcing the log path
        success_markers: Substrings proving the server is ready
    """
    name: str = "sql-server"
    start_script: str = "../../sbin/start-sql-server.sh"
    stop_script: str = "../../sbin/stop-sql-server.sh"
    master: str = "local"
    pg_version: str = "9.6"
    ssl: bool = False
    single_session: bool = False
    query_mode: str = "extended"
    psql_enabled: bool = True
    options: dict = field(default_factory=dict)
    log_file_mask: str = DEFAULT_LOG_FILE_MASK
    success_markers: list = field(default_factory=lambda: list(DEFAULT_SUCCESS_MARKERS))

    def validate(self):
        for key in ['name', 'start_script', 'stop_script', 'master', 'pg_version', 'log_file_mask']:
            value = getattr(self, key)
            if not isinstance(value, str):
                raise ValueError(f"server {key} should be string and not {stype(value)}")
            if not value:
                raise ValueError(f"server {key} should not be empty")

        for key in ['ssl', 'single_session', 'psql_enabled']:
            value = getattr(self, key)
            if not isinstance(value, bool):
                raise ValueError(f"server {key} should be bool and not {stype(value)}")

        if self.query_mode not in QUERY_MODES:
            raise ValueError(f"wrong query mode {self.query_mode}, expected one of {QUERY_MODES}")

        if not isinstance(self.options, dict):
            raise ValueError(f"server options should be dict and not {stype(self.options)}")

        if not isinstance(self.success_markers, list) or not self.success_markers:
            raise ValueError("server success_markers should be a non-empty list")
        for marker in self.success_markers:
            if not isinstance(marker, str) or not marker:
                raise ValueError(f"wrong success marker {marker!r}")


@dataclass
class SupervisorSettings:
    max_attempts: int = 3
    readiness_timeout: float = 60.0
    stop_grace_period: float = 3.0
    base_port: int = 0  # 0 - pick a random port in [10000, 19999]
    tail_command: list = field(default_factory=lambda: ['/usr/bin/env', 'tail', '-n', '+0', '-f'])
    scratch_dir: str = None

    def validate(self):
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ValueError(
                f"supervisor max_attempts should be positive integer and not {self.max_attempts!r}"
            )

        if not isinstance(self.readiness_timeout, (int, float)) or self.readiness_timeout <= 0:
            raise ValueError("supervisor readiness_timeout should be positive")

        if not isinstance(self.stop_grace_period, (int, float)) or self.stop_grace_period < 0:
            raise ValueError("supervisor stop_grace_period should be non-negative")

        if not isinstance(self.base_port, int):
            raise ValueError(f"supervisor base_port should be int and not {stype(self.base_port)}")

        if self.base_port < 0 or self.base_port + self.max_attempts - 1 > 65535:
            raise ValueError(f"supervisor base_port {self.base_port} is out of range")

        if not isinstance(self.tail_command, list) or not self.tail_command:
            raise ValueError("supervisor tail_command should be a non-empty list")

        if self.scratch_dir is not None and not isinstance(self.scratch_dir, str):
            raise ValueError(
                f"supervisor scratch_dir should be string or None and not {stype(self.scratch_dir)}"
            )


class Settings:
    DEFAULT_LOG_LEVEL = "info"

    ENV_OVERRIDES = {
        'SQL_SERVER_START_SCRIPT': 'start_script',
        'SQL_SERVER_STOP_SCRIPT': 'stop_script',
        'SQL_SERVER_NAME': 'name',
    }

    def __init__(self):
        self.server = ServerSettings()
        self.supervisor = SupervisorSettings()
        self.settings_file = ""
        self.log_level = "info"
        self.debug_log_level = False
        self.http_host = ""
        self.http_port = 0

    def load(self, settings_file):
        with open(settings_file, "r") as f:
            data = yaml.safe_load(f.read()) or {}

        self.settings_file = settings_file
        self.server = ServerSettings(**(data.pop("server", None) or {}))
        self.supervisor = SupervisorSettings(**(data.pop("supervisor", None) or {}))
        self.log_level = data.pop("log_level", Settings.DEFAULT_LOG_LEVEL)
        self.http_host = data.pop("http_host", "")
        self.http_port = data.pop("http_port", 0)

        if data:
            raise Exception(f"Unsupported config options: {list(data.keys())}")

        self.apply_env_overrides()
        self.validate()

    def apply_env_overrides(self):
        for env_name, attr in Settings.ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                setattr(self.server, attr, value)

    def validate_log_level(self):
        if self.log_level not in ["critical", "error", "warning", "info", "debug"]:
            raise ValueError(f"wrong log level {self.log_level}")
        if self.log_level == "debug":
            self.debug_log_level = True

    def validate(self):
        self.server.validate()
        self.supervisor.validate()
        self.validate_log_level()
        if not isinstance(self.http_host, str):
            raise ValueError(f"http_host should be string and not {stype(self.http_host)}")
        if not isinstance(self.http_port, int):
            raise ValueError(f"http_port should be int and not {stype(self.http_port)}")
