"""Shared test fixtures and utilities for sql-server-supervisor tests"""

import os
import shutil
import stat
import time

import pytest
import yaml

from sql_server_supervisor.config import Settings


LOG_FILE_MASK = 'starting X, logging to '
READY_LINE = 'Service ready'


def assert_wait(condition, max_wait_time=5.0, retry_interval=0.05):
    max_time = time.time() + max_wait_time
    while time.time() < max_time:
        if condition():
            return
        time.sleep(retry_interval)
    assert condition()


requires_tail = pytest.mark.skipif(
    shutil.which('tail') is None or not os.path.exists('/usr/bin/env'),
    reason='needs the tail binary',
)


@pytest.fixture
def make_script(tmp_path):
    """Write an executable ``/bin/sh`` script and return its path."""

    def _make_script(name, body):
        path = tmp_path / name
        path.write_text('#!/bin/sh\n' + body)
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make_script


@pytest.fixture
def stop_script(make_script, tmp_path):
    calls_file = tmp_path / 'stop_calls.txt'
    path = make_script(
        'stop.sh',
        f'echo "$SPARK_IDENT_STRING $SPARK_PID_DIR" >> "{calls_file}"\nexit 0\n',
    )
    return path, calls_file


@pytest.fixture
def settings(tmp_path, stop_script):
    """Settings tuned for fast tests: no grace period, short timeouts."""
    cfg = Settings()
    cfg.server.name = 'test-sql-server'
    cfg.server.start_script = str(tmp_path / 'start.sh')
    cfg.server.stop_script = stop_script[0]
    cfg.server.log_file_mask = LOG_FILE_MASK
    cfg.server.success_markers = [READY_LINE, 'PgService: Start running the SQL server']
    cfg.supervisor.max_attempts = 3
    cfg.supervisor.readiness_timeout = 5.0
    cfg.supervisor.stop_grace_period = 0
    cfg.supervisor.base_port = 15000
    cfg.supervisor.scratch_dir = str(tmp_path)
    cfg.validate()
    return cfg


@pytest.fixture
def config_file(tmp_path, settings):
    """Write ``settings`` out as YAML and return the file path."""

    def _config_file(**overrides):
        data = {
            'server': {
                'name': settings.server.name,
                'start_script': settings.server.start_script,
                'stop_script': settings.server.stop_script,
                'log_file_mask': settings.server.log_file_mask,
                'success_markers': list(settings.server.success_markers),
            },
            'supervisor': {
                'max_attempts': settings.supervisor.max_attempts,
                'readiness_timeout': settings.supervisor.readiness_timeout,
                'stop_grace_period': settings.supervisor.stop_grace_period,
                'base_port': settings.supervisor.base_port,
                'scratch_dir': settings.supervisor.scratch_dir,
            },
            'log_level': 'debug',
        }
        data.update(overrides)
        path = tmp_path / 'config.yaml'
        with open(path, 'w') as f:
            yaml.dump(data, f)
        return str(path)

    return _config_file


# Pytest markers
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "optional: mark test as optional (may be skipped in CI)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")
