"""
Tests for the Rails runner client against a scripted child process.
"""

import sys

import pytest

from rubis.config import Settings
from rubis.runner_client import NullRunnerClient, RunnerClient

FAKE_RUNNER = r'''
import json
import sys
import time


def read_message():
    header = b""
    while not header.endswith(b"\r\n\r\n"):
        byte = sys.stdin.buffer.read(1)
        if not byte:
            return None
        header += byte
    length = int(header.split(b":")[1].strip())
    return json.loads(sys.stdin.buffer.read(length))


def write_message(message):
    body = json.dumps(message).encode("utf-8")
    sys.stdout.buffer.write(b"Content-Length: %d\r\n\r\n" % len(body) + body)
    sys.stdout.buffer.flush()


write_message({"result": {"rails": "7.1.0"}})
while True:
    request = read_message()
    if request is None or request["method"] == "shutdown":
        break
    method, params = request["method"], request["params"]
    if method == "route_location":
        if params["name"] == "slow_path":
            time.sleep(30)
        elif params["name"] == "missing_path":
            write_message({"error": "no such route"})
        else:
            write_message({"result": {"location": "/app/config/routes.rb:3"}})
    elif method == "association_target":
        name = params["association_name"]
        write_message({"result": {"location": "/app/app/models/%s.rb:1" % name}})
    elif method == "controller_action_target":
        if params["action"] == "single":
            write_message({"result": {"location": "/app/app/controllers/a.rb:1"}})
        else:
            write_message(
                {
                    "result": [
                        {"location": "/app/app/controllers/a.rb:1"},
                        "junk",
                        {"location": "/app/app/controllers/b.rb:2"},
                    ]
                }
            )
    else:
        write_message({"error": "unknown method %s" % method})
'''

FAILING_RUNNER = r'''
import json
import sys

body = json.dumps({"error": "could not boot Rails"}).encode("utf-8")
sys.stdout.buffer.write(b"Content-Length: %d\r\n\r\n" % len(body) + body)
sys.stdout.buffer.flush()
'''


def runner_settings(script: str) -> Settings:
    return Settings(runner_command=[sys.executable, "-c", script], runner_timeout=10.0)


@pytest.fixture
def client():
    client = RunnerClient.create_client(runner_settings(FAKE_RUNNER))
    yield client
    client.stop()


class TestRequests:
    def test_handshake(self, client):
        assert not isinstance(client, NullRunnerClient)
        assert client.connected

    def test_route_location(self, client):
        assert client.route_location("users_path") == {
            "location": "/app/config/routes.rb:3"
        }

    def test_association_target(self, client):
        result = client.association_target(model_name="User", association_name="posts")
        assert result == {"location": "/app/app/models/posts.rb:1"}

    def test_controller_action_list(self, client):
        results = client.controller_action_target(controller="admin/health", action="check")
        assert results == [
            {"location": "/app/app/controllers/a.rb:1"},
            {"location": "/app/app/controllers/b.rb:2"},
        ]

    def test_controller_action_single_result(self, client):
        results = client.controller_action_target(controller="health", action="single")
        assert results == [{"location": "/app/app/controllers/a.rb:1"}]

    def test_error_response(self, client):
        assert client.route_location("missing_path") is None
        # The runner stays usable after an error response
        assert client.connected
        assert client.route_location("users_path") is not None

    def test_unknown_method(self, client):
        assert client.make_request("explode") is None
        assert client.connected


class TestLifecycle:
    def test_no_command(self):
        assert isinstance(RunnerClient.create_client(Settings()), NullRunnerClient)

    def test_missing_executable(self):
        settings = Settings(runner_command=["/nonexistent/bin/rails-runner"])
        assert isinstance(RunnerClient.create_client(settings), NullRunnerClient)

    def test_failed_boot(self):
        client = RunnerClient.create_client(runner_settings(FAILING_RUNNER))
        assert isinstance(client, NullRunnerClient)

    def test_timeout_disconnects(self):
        client = RunnerClient.create_client(runner_settings(FAKE_RUNNER))
        assert client.connected
        client.timeout = 0.5

        assert client.route_location("slow_path") is None
        assert not client.connected
        assert client.route_location("users_path") is None

    def test_stop(self):
        client = RunnerClient.create_client(runner_settings(FAKE_RUNNER))
        client.stop()
        assert not client.connected
        assert client.route_location("users_path") is None
        # Stopping twice is harmless
        client.stop()

    def test_null_client(self):
        client = NullRunnerClient()
        assert not client.connected
        assert client.association_target(model_name="User", association_name="posts") is None
        assert client.route_location("users_path") is None
        assert client.controller_action_target(controller="a", action="b") is None
        client.stop()
