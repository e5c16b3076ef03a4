# publish.py
# Transient publisher for the generated CSV
# - FastAPI app with a single GET route re-serving immutable bytes
# - uvicorn on a background thread, bound to a local port
# - ngrok tunnel (pyngrok) exposing that port on a public URL
# - Nothing is torn down on return; the orchestrator calls disconnect()/close()

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Response
from pyngrok import conf, ngrok
from pyngrok.exception import PyngrokError

from ..domain.models import DEFAULT_FILENAME
from ..types import CsvDocument, TunnelError

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT_S = 10.0
SHUTDOWN_TIMEOUT_S = 10.0


def build_csv_app(content: bytes, filename: str = DEFAULT_FILENAME) -> FastAPI:
    """FastAPI app serving ``content`` at ``/<filename>`` on every GET."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    headers = {
        "Content-Type": "text/csv",
        "Content-Disposition": f"attachment; filename={filename}",
    }

    @app.get(f"/{filename}")
    def download_csv() -> Response:
        return Response(content=content, headers=headers)

    return app


class CsvFileServer:
    """Local HTTP listener for one CSV document, run by uvicorn on a daemon thread."""

    def __init__(self, port: int = 3000, host: str = "127.0.0.1", filename: str = DEFAULT_FILENAME):
        self.port = port
        self.host = host
        self.filename = filename
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def local_url(self) -> str:
        return f"http://{self.host}:{self.port}/{self.filename}"

    def start(self, content: bytes) -> None:
        """
        Bind the listener and block until it accepts connections.

        Raises:
            TunnelError: If the listener is already running or cannot bind
        """
        if self.running:
            raise TunnelError(f"Listener already running on port {self.port}")

        config = uvicorn.Config(
            build_csv_app(content, self.filename),
            host=self.host,
            port=self.port,
            log_level="warning",
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(target=self._server.run, name="csv-listener", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + STARTUP_TIMEOUT_S
        while not self._server.started:
            if not self._thread.is_alive():
                self._server = None
                self._thread = None
                raise TunnelError(f"Could not bind CSV listener on {self.host}:{self.port}")
            if time.monotonic() > deadline:
                self.close()
                raise TunnelError(f"CSV listener did not start within {STARTUP_TIMEOUT_S:.0f}s")
            time.sleep(0.05)

        logger.info(f"Serving CSV on {self.local_url}")

    def close(self) -> None:
        """Stop the listener. No-op if it is not running."""
        if self._server is None:
            return
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=SHUTDOWN_TIMEOUT_S)
            if self._thread.is_alive():
                logger.warning(f"CSV listener thread did not stop within {SHUTDOWN_TIMEOUT_S:.0f}s")
        self._server = None
        self._thread = None
        logger.info(f"Stopped CSV listener on port {self.port}")


class NgrokTunnel:
    """ngrok HTTP tunnel to a local port, managed through pyngrok."""

    def __init__(self, auth_token: str, subdomain: Optional[str] = None, domain: Optional[str] = None):
        self.auth_token = auth_token
        self.subdomain = subdomain
        self.domain = domain
        self._pyngrok_config = conf.PyngrokConfig(auth_token=auth_token)
        self._tunnel = None

    @property
    def public_url(self) -> Optional[str]:
        return self._tunnel.public_url if self._tunnel is not None else None

    def open(self, port: int, host: Optional[str] = None) -> str:
        """
        Open the tunnel and return its public base URL.

        The agent is started by the connect call, so it is killed again when
        the tunnel request itself is rejected.

        Raises:
            TunnelError: Auth rejected, reserved name unavailable, agent or network failure
        """
        options = {}
        if self.domain:
            options["domain"] = self.domain
        elif self.subdomain:
            options["subdomain"] = self.subdomain

        addr = f"{host}:{port}" if host else str(port)
        try:
            self._tunnel = ngrok.connect(
                addr=addr,
                proto="http",
                pyngrok_config=self._pyngrok_config,
                **options,
            )
        except (PyngrokError, OSError) as e:
            self._kill_agent()
            raise TunnelError(f"Failed to open ngrok tunnel to {addr}: {e}") from e

        logger.info(f"ngrok tunnel created: {self._tunnel.public_url}")
        return self._tunnel.public_url

    def disconnect(self) -> None:
        """Close the tunnel and stop the ngrok agent. No-op if no tunnel is open."""
        if self._tunnel is None:
            return
        public_url = self._tunnel.public_url
        try:
            ngrok.disconnect(public_url, pyngrok_config=self._pyngrok_config)
            ngrok.kill(pyngrok_config=self._pyngrok_config)
        except (PyngrokError, OSError) as e:
            raise TunnelError(f"Failed to disconnect ngrok tunnel {public_url}: {e}") from e
        finally:
            self._tunnel = None
        logger.info(f"ngrok tunnel closed: {public_url}")

    def _kill_agent(self) -> None:
        try:
            ngrok.kill(pyngrok_config=self._pyngrok_config)
        except (PyngrokError, OSError) as e:
            logger.warning(f"Could not stop ngrok agent: {e}")


class TransientPublisher:
    """
    Expose a CSV document on a public URL for the duration of one run.

    Usage:
        publisher = TransientPublisher(CsvFileServer(port=3000), NgrokTunnel(token))
        try:
            url = publisher.publish(document)   # https://<tunnel>/offerings.csv
            ...
        finally:
            publisher.disconnect()
            publisher.close()
    """

    def __init__(self, server: CsvFileServer, tunnel: NgrokTunnel):
        self.server = server
        self.tunnel = tunnel
        self.url: Optional[str] = None

    def publish(self, document: CsvDocument) -> str:
        """Serve the document locally, open the tunnel, return the public file URL."""
        self.server.start(document.encode())
        base_url = self.tunnel.open(self.server.port, self.server.host)
        self.url = f"{base_url.rstrip('/')}/{self.server.filename}"
        logger.info(f"CSV published at {self.url}")
        return self.url

    def disconnect(self) -> None:
        """Tear down the public tunnel."""
        self.tunnel.disconnect()

    def close(self) -> None:
        """Stop the local listener."""
        self.server.close()
        self.url = None
