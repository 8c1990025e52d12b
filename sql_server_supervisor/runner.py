import threading
import time
from logging import getLogger

from fastapi import APIRouter, FastAPI
from uvicorn import Config, Server

from .config import Settings
from .supervisor import SqlServerSupervisor
from .utils import GracefulKiller


logger = getLogger(__name__)


class Runner:
    """Keeps one supervised server up until the process is asked to exit.

    Optionally exposes ``/status`` and ``/restart_server`` over HTTP. Restarts
    requested over HTTP are carried out by the main loop, so the supervisor is
    only ever driven from one thread.
    """

    LOOP_INTERVAL = 0.3

    def __init__(self, config: Settings, supervisor: SqlServerSupervisor = None):
        self.config = config
        self.supervisor = supervisor or SqlServerSupervisor(config)
        self.app = FastAPI()
        self.router = None
        self.http_server = None
        self.need_restart_server = False
        self.server_restarted = False
        self.setup_routes()

    def setup_routes(self):
        self.router = APIRouter()
        self.router.add_api_route("/status", self.get_status, methods=["GET"])
        self.router.add_api_route("/restart_server", self.restart_server, methods=["GET"])
        self.app.include_router(self.router)

    def run_server(self):
        if not self.config.http_host or not self.config.http_port:
            logger.info('http server disabled')
            return
        logger.info('starting http server')

        config = Config(app=self.app, host=self.config.http_host, port=self.config.http_port)
        self.http_server = Server(config)
        self.http_server.run()

    def get_status(self):
        return self.supervisor.get_status()

    def restart_server(self):
        self.server_restarted = False
        self.need_restart_server = True
        while not self.server_restarted:
            logger.info('waiting SQLServer restarted..')
            time.sleep(1)
        return {"restarted": True, **self.supervisor.get_status()}

    def restart_server_if_required(self):
        if not self.need_restart_server:
            return
        try:
            self.supervisor.restart()
        except Exception as e:
            logger.error(f'SQLServer restart failed: {e}')
        self.need_restart_server = False
        self.server_restarted = True

    def run(self):
        killer = GracefulKiller()

        try:
            self.supervisor.start()
        except Exception:
            self.supervisor.close()
            raise
        descriptor = self.supervisor.connection_descriptor()
        logger.info(f'SQLServer is ready: {descriptor.jdbc_url}')

        server_thread = threading.Thread(target=self.run_server, daemon=True)
        server_thread.start()

        while not killer.kill_now:
            time.sleep(self.LOOP_INTERVAL)
            self.restart_server_if_required()

        logger.info('stopping runner')
        self.supervisor.close()

        if self.http_server:
            self.http_server.should_exit = True

        server_thread.join()

        logger.info('stopped')
