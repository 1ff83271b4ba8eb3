import http.server
import socketserver
import os
import re
import sys
import signal
import threading
import logging
import urllib.parse
from typing import Any

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

class Initializer:
    @staticmethod
    def load_env():
        """Load .env file into os.environ if it exists."""
        env_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env')
        if not os.path.exists(env_path):
            return

        try:
            with open(env_path, 'r') as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith('#'):
                        continue
                    try:
                        key, value = line.split('=', 1)
                        key = key.strip()
                        value = value.strip().strip("'").strip('"')
                        # Do not override existing environment variables
                        if key not in os.environ:
                            os.environ[key] = value
                    except ValueError:
                        logger.warning(f"Ignoring malformed .env line: {line}")
        except OSError as e:
            logger.warning(f"Failed to read .env file: {e}")

    @staticmethod
    def setup_working_directory():
        """Run from the project root so CORE is importable."""
        script_dir = os.path.dirname(os.path.abspath(__file__))
        os.chdir(script_dir)
        if script_dir not in sys.path:
            sys.path.insert(0, script_dir)

# Initialize environment
Initializer.load_env()

# Configuration
PORT = int(os.environ.get("SERVER_PORT", 8000))

if not os.environ.get("SERVER_PORT"):
    logger.warning("SERVER_PORT not found in .env, defaulting to 8000")

from CORE.BACKEND import handlers  # noqa: E402


GET_ROUTES = [
    (re.compile(r'^/api/health$'), handlers.handle_health),
    (re.compile(r'^/api/territories/viewport$'), handlers.handle_viewport),
    (re.compile(r'^/api/territories/region/([^/]+)$'), handlers.handle_get_region),
    (re.compile(r'^/api/territories/paths/([^/]+)$'), handlers.handle_get_paths),
    (re.compile(r'^/api/territories/paths$'), handlers.handle_recent_paths),
    (re.compile(r'^/api/territories/stats$'), handlers.handle_global_stats),
    (re.compile(r'^/api/users/([^/]+)/stats$'), handlers.handle_user_stats),
    (re.compile(r'^/api/users/([^/]+)/regions$'), handlers.handle_user_regions),
    (re.compile(r'^/api/leaderboard$'), handlers.handle_leaderboard),
]

POST_ROUTES = [
    (re.compile(r'^/api/territories/capture-path$'), handlers.handle_capture_path),
    (re.compile(r'^/api/territories/capture$'), handlers.handle_single_capture),
    (re.compile(r'^/api/territories/batch$'), handlers.handle_batch_update),
]


def match_route(routes, path):
    """Return (handler_fn, args) for the first pattern matching path, else (None, ())."""
    route_path = urllib.parse.urlparse(path).path.rstrip('/') or '/'
    for pattern, handler_fn in routes:
        match = pattern.match(route_path)
        if match:
            return handler_fn, tuple(urllib.parse.unquote(g) for g in match.groups())
    return None, ()


class TerritoryRequestHandler(http.server.BaseHTTPRequestHandler):
    """Routes /api requests to the handler functions."""

    def log_message(self, format: str, *args: Any) -> None:
        """Use standard logging instead of stderr."""
        logger.info("%s - - [%s] %s" %
                    (self.client_address[0],
                     self.log_date_time_string(),
                     format % args))

    def do_OPTIONS(self):
        """CORS preflight."""
        self.send_response(204)
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'GET, POST, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')
        self.end_headers()

    def do_GET(self):
        self.dispatch(GET_ROUTES)

    def do_POST(self):
        self.dispatch(POST_ROUTES)

    def dispatch(self, routes):
        logger.info(f"INCOMING {self.command} REQUEST: {self.path}")
        handler_fn, args = match_route(routes, self.path)
        if handler_fn is None:
            self.send_error(404, "Not Found")
            return
        handler_fn(self, *args)

class ThreadedHTTPServer(socketserver.ThreadingTCPServer):
    """Multi-threaded server to handle concurrent requests."""
    allow_reuse_address = True
    daemon_threads = True

    def handle_error(self, request, client_address):
        """Override to silence disconnect errors."""
        exc_type, _, _ = sys.exc_info()

        # Client closed before we finished
        if exc_type is ConnectionAbortedError or exc_type is BrokenPipeError:
            return

        super().handle_error(request, client_address)

def ensure_storage():
    """Build the engine and check storage is reachable before accepting requests."""
    from CORE.BACKEND.errors import StorageUnavailable
    from CORE.BACKEND.territory_engine import get_engine

    engine = get_engine()
    if engine.settings.storage_backend == 'memory':
        logger.info("Storage: in-memory")
        return

    try:
        engine.ping()
        logger.info(f"✅ Redis reachable (Port {os.getenv('REDIS_PORT', 6379)})")
    except StorageUnavailable:
        logger.error("Redis is not reachable. Captures will fail until it is back.")
        logger.error("Please run 'docker-compose up -d redis' or set STORAGE_BACKEND=memory.")

def run_server():
    Initializer.setup_working_directory()
    ensure_storage()

    with ThreadedHTTPServer(("", PORT), TerritoryRequestHandler) as httpd:
        logger.info(f"http://localhost:{PORT}")

        # Register signal handlers for graceful shutdown (Docker friendly)
        def signal_handler(sig, frame):
            logger.info("Shutting down server...")
            # shutdown() must be called from a different thread to avoid deadlock with serve_forever()
            threading.Thread(target=httpd.shutdown).start()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            httpd.server_close()
            logger.info("Server stopped.")

if __name__ == "__main__":
    run_server()
