"""
Client for the Rails runner process.

Questions that need a booted Rails application (where is an association
declared, which file defines a route helper or a controller action) are
answered by a long-lived runner process. Messages are JSON bodies framed with
a ``Content-Length`` header over the runner's stdin and stdout.

Transport problems never propagate: they are logged, the client disconnects
and every later request answers ``None``.
"""

import json
import logging
import select
import subprocess
import threading
import time
from typing import Any, Dict, List, Optional

from rubis.config import Settings

logger = logging.getLogger("rubis")

SHUTDOWN_GRACE_PERIOD = 2.0


class RunnerClient:
    """Synchronous request/response client for a Rails runner process."""

    @classmethod
    def create_client(
        cls, settings: Settings, workspace_path: Optional[str] = None
    ) -> "RunnerClient":
        """
        Start a runner for the configured command.

        Returns a :class:`NullRunnerClient` when no command is configured or
        the runner fails to start.
        """
        if not settings.runner_command:
            logger.info("No Rails runner configured, runtime lookups are disabled")
            return NullRunnerClient()
        try:
            return cls(
                settings.runner_command,
                cwd=workspace_path,
                timeout=settings.runner_timeout,
            )
        except OSError as e:
            logger.error("Could not start Rails runner %s: %s", settings.runner_command, e)
            return NullRunnerClient()

    def __init__(
        self,
        command: List[str],
        cwd: Optional[str] = None,
        timeout: float = 5.0,
    ):
        self.timeout = timeout
        self._lock = threading.Lock()
        # Unbuffered so select() sees exactly what is left to read
        self._process: Optional[subprocess.Popen] = subprocess.Popen(
            command,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            cwd=cwd,
            bufsize=0,
        )
        try:
            handshake = self._read_response()
        except (OSError, ValueError) as e:
            self._terminate()
            raise ConnectionError(f"Rails runner did not complete its handshake: {e}")
        if "error" in handshake:
            self._terminate()
            raise ConnectionError(f"Rails runner failed to boot: {handshake['error']}")
        logger.info("Rails runner started: %s", handshake.get("result"))

    @property
    def connected(self) -> bool:
        return self._process is not None and self._process.poll() is None

    # === Requests ===

    def association_target(
        self, model_name: str, association_name: str
    ) -> Optional[Dict[str, Any]]:
        result = self.make_request(
            "association_target",
            model_name=model_name,
            association_name=association_name,
        )
        return result if isinstance(result, dict) else None

    def route_location(self, name: str) -> Optional[Dict[str, Any]]:
        result = self.make_request("route_location", name=name)
        return result if isinstance(result, dict) else None

    def controller_action_target(
        self, controller: str, action: str
    ) -> Optional[List[Dict[str, Any]]]:
        result = self.make_request(
            "controller_action_target", controller=controller, action=action
        )
        if isinstance(result, dict):
            return [result]
        if isinstance(result, list):
            return [item for item in result if isinstance(item, dict)]
        return None

    def make_request(self, method: str, **params: Any) -> Optional[Any]:
        """Send one request and return its result, or None on any failure."""
        with self._lock:
            if not self.connected:
                logger.debug("Rails runner is not running, skipping %s", method)
                return None
            try:
                self._send({"method": method, "params": params})
                response = self._read_response()
            except (OSError, ValueError) as e:
                logger.error("Rails runner request %s failed: %s", method, e)
                self._terminate()
                return None

        if "error" in response:
            logger.warning("Rails runner returned an error for %s: %s", method, response["error"])
            return None
        return response.get("result")

    def stop(self) -> None:
        with self._lock:
            if not self.connected:
                return
            try:
                self._send({"method": "shutdown", "params": {}})
            except OSError as e:
                logger.debug("Could not send shutdown to Rails runner: %s", e)
            self._terminate()

    # === Transport ===

    def _send(self, message: Dict[str, Any]) -> None:
        assert self._process is not None and self._process.stdin is not None
        body = json.dumps(message).encode("utf-8")
        header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
        self._process.stdin.write(header + body)
        self._process.stdin.flush()

    def _wait_readable(self, deadline: float) -> None:
        assert self._process is not None and self._process.stdout is not None
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(f"no response from Rails runner within {self.timeout}s")
        ready, _, _ = select.select([self._process.stdout], [], [], remaining)
        if not ready:
            raise TimeoutError(f"no response from Rails runner within {self.timeout}s")

    def _read_exact(self, size: int, deadline: float) -> bytes:
        assert self._process is not None and self._process.stdout is not None
        chunks = []
        while size > 0:
            self._wait_readable(deadline)
            chunk = self._process.stdout.read(size)
            if not chunk:
                raise ConnectionError("Rails runner closed its output")
            chunks.append(chunk)
            size -= len(chunk)
        return b"".join(chunks)

    def _read_response(self) -> Dict[str, Any]:
        deadline = time.monotonic() + self.timeout
        header = b""
        while not header.endswith(b"\r\n\r\n"):
            header += self._read_exact(1, deadline)

        content_length = None
        for line in header.decode("ascii", errors="replace").split("\r\n"):
            name, _, value = line.partition(":")
            if name.strip().lower() == "content-length":
                content_length = int(value.strip())
        if content_length is None:
            raise ValueError(f"missing Content-Length header in {header!r}")

        response = json.loads(self._read_exact(content_length, deadline))
        if not isinstance(response, dict):
            raise ValueError(f"unexpected Rails runner response: {response!r}")
        return response

    def _terminate(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        for stream in (process.stdin, process.stdout):
            if stream is not None:
                try:
                    stream.close()
                except OSError:
                    pass
        try:
            process.wait(timeout=SHUTDOWN_GRACE_PERIOD)
        except subprocess.TimeoutExpired:
            logger.warning("Rails runner did not exit, killing it")
            process.kill()
            process.wait()


class NullRunnerClient(RunnerClient):
    """Stand-in used when no Rails runner is available: every lookup misses."""

    def __init__(self):
        self.timeout = 0.0
        self._lock = threading.Lock()
        self._process = None

    @property
    def connected(self) -> bool:
        return False

    def make_request(self, method: str, **params: Any) -> Optional[Any]:
        return None
