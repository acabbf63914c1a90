"""
server_manager.py - Start, stop and probe the preview servers.

Each server is a werkzeug WSGI server running the preview Flask app on its
own daemon thread, keyed by (namespace, name).

Usage:
    from services.server_manager import PreviewServerManager
    manager = PreviewServerManager()
    manager.start(namespace="to-build", name="staging", port=10002, dirs=["out/staging"])
    manager.is_up(namespace="to-build", name="staging")
"""

import time
import logging
import threading
from threading import Lock

import requests
from werkzeug.serving import make_server

from app import create_app
from config import Config
from pipeline.errors import LID

logger = logging.getLogger("tobuild")


class PreviewServerManager:
    """Thread-backed registry of running preview servers."""

    def __init__(self, host=None, probe_timeout=1.0, stop_timeout=None):
        self.host = host or Config.SERVER_HOST
        self.probe_timeout = probe_timeout
        self.stop_timeout = stop_timeout or Config.SERVER_STOP_TIMEOUT
        self._servers = {}
        self._lock = Lock()
        # Probes go to localhost only; never through an environment proxy.
        self._session = requests.Session()
        self._session.trust_env = False

    def _probe_host(self):
        return "127.0.0.1" if self.host in ("0.0.0.0", "") else self.host

    def start(self, namespace, name, port, dirs, dynamic_dirs=None):
        """Serve ``dirs`` on ``port``. Returns False if the server could not start."""
        key = (namespace, name)
        with self._lock:
            current = self._servers.get(key)
            if current and current["thread"].is_alive():
                logger.warning(f"{namespace}/{name} server is already running on port {current['port']}")
                return False

        app = create_app(name, dirs, dynamic_dirs)
        try:
            server = make_server(self.host, port, app, threaded=True)
        except (OSError, SystemExit) as e:
            logger.error(f"Failed to start {namespace}/{name} on port {port}: {e}",
                         extra={"lid": LID.SERVER_START})
            return False

        thread = threading.Thread(target=server.serve_forever,
                                  name=f"{namespace}:{name}", daemon=True)
        thread.start()

        with self._lock:
            self._servers[key] = {
                "server": server,
                "thread": thread,
                "port": server.server_port,
                "dirs": list(dirs),
                "started_at": time.time(),
            }
        logger.info(f"{name} server listening on http://{self._probe_host()}:{server.server_port}")
        return True

    def stop(self, namespace, name):
        """Shut a server down. Returns True when it is no longer running."""
        with self._lock:
            entry = self._servers.pop((namespace, name), None)
        if entry is None:
            return False

        try:
            entry["server"].shutdown()
            entry["server"].server_close()
        except OSError as e:
            logger.error(f"Error while stopping {namespace}/{name}: {e}",
                         extra={"lid": LID.SERVER_STOP})
        entry["thread"].join(timeout=self.stop_timeout)
        stopped = not entry["thread"].is_alive()
        if stopped:
            logger.info(f"{name} server stopped")
        return stopped

    def is_up(self, namespace, name):
        """True when the server thread is alive and its health route answers."""
        with self._lock:
            entry = self._servers.get((namespace, name))
        if entry is None or not entry["thread"].is_alive():
            return False

        url = f"http://{self._probe_host()}:{entry['port']}/api/health"
        try:
            response = self._session.get(url, timeout=self.probe_timeout)
        except requests.RequestException:
            return False
        return response.ok

    def list_servers(self):
        with self._lock:
            items = list(self._servers.items())
        return [
            {
                "namespace": namespace,
                "name": name,
                "port": entry["port"],
                "dirs": entry["dirs"],
                "alive": entry["thread"].is_alive(),
            }
            for (namespace, name), entry in items
        ]

    def stop_all(self):
        with self._lock:
            keys = list(self._servers)
        for namespace, name in keys:
            self.stop(namespace, name)
