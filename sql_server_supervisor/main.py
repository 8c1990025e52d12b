#!/usr/bin/env python3

import argparse
import json
import logging
import os
import sys

from .config import Settings
from .errors import SupervisorError
from .runner import Runner
from .supervisor import SqlServerSupervisor


def set_logging_config(tags, log_level_str=None):
    """Configure logging to output only to stderr."""
    handlers = [logging.StreamHandler(sys.stderr)]

    log_levels = {
        'critical': logging.CRITICAL,
        'error': logging.ERROR,
        'warning': logging.WARNING,
        'info': logging.INFO,
        'debug': logging.DEBUG,
    }

    log_level = log_levels.get(log_level_str)
    if log_level is None:
        logging.warning(f'Unknown log level {log_level_str}, setting info')
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=f'[{tags} %(asctime)s %(levelname)8s] %(message)s',
        handlers=handlers,
    )


def run_start(args, config: Settings):
    set_logging_config('start', log_level_str=config.log_level)
    supervisor = SqlServerSupervisor(config)
    try:
        supervisor.start()
    except SupervisorError as e:
        logging.error(f'SQLServer failed to start: {type(e).__name__}: {e}')
        supervisor.close()
        return 1
    descriptor = supervisor.connection_descriptor()
    print(json.dumps({
        'listening_port': supervisor.listening_port,
        'log_path': str(supervisor.log_path),
        'pid_dir': supervisor.scratch_dir,
        'jdbc_url': descriptor.jdbc_url,
        'dsn': descriptor.dsn(),
    }), flush=True)
    supervisor.release()
    return 0


def run_stop(args, config: Settings):
    set_logging_config('stop', log_level_str=config.log_level)
    if not os.path.isdir(args.pid_dir):
        logging.error(f'pid directory {args.pid_dir} does not exist')
        return 1
    supervisor = SqlServerSupervisor(config, scratch_dir=args.pid_dir)
    supervisor.close()
    return 0


def run_supervise(args, config: Settings):
    set_logging_config('supervisor', log_level_str=config.log_level)
    runner = Runner(config)
    try:
        runner.run()
    except SupervisorError as e:
        logging.error(f'SQLServer failed to start: {type(e).__name__}: {e}')
        return 1
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "mode", help="run mode",
        type=str,
        choices=["start", "stop", "supervise"])
    parser.add_argument("--config", help="config file path", default='config.yaml', type=str)
    parser.add_argument(
        "--pid_dir", type=str, default=None,
        help="pid directory printed by 'start', required by 'stop' to find that server",
    )
    args = parser.parse_args(argv)
    if args.mode == 'stop' and not args.pid_dir:
        parser.error("stop mode needs --pid_dir")

    config = Settings()
    config.load(args.config)

    if args.mode == 'start':
        return run_start(args, config)
    if args.mode == 'stop':
        return run_stop(args, config)
    if args.mode == 'supervise':
        return run_supervise(args, config)


if __name__ == '__main__':
    sys.exit(main())
