import logging

import pytest

from rubis.config import DEFAULT_ROUTE_FILES_PATTERN, DEFAULT_RUNNER_TIMEOUT, Settings


def test_defaults():
    settings = Settings.from_initialization_options(None)
    assert settings.route_files_pattern == DEFAULT_ROUTE_FILES_PATTERN
    assert settings.runner_command is None
    assert settings.runner_timeout == DEFAULT_RUNNER_TIMEOUT
    assert "vendor" in settings.index_exclude
    assert settings.logging_level == logging.INFO


def test_all_options():
    settings = Settings.from_initialization_options(
        {
            "routeFilesPattern": r"routes\.rb$",
            "runnerCommand": ["bin/rails", "runner", "script/lsp_runner.rb"],
            "runnerTimeout": 10,
            "indexExclude": ["spec"],
            "logLevel": "debug",
            "somethingElse": True,
        }
    )
    assert settings.route_files_pattern == r"routes\.rb$"
    assert settings.runner_command == ["bin/rails", "runner", "script/lsp_runner.rb"]
    assert settings.runner_timeout == 10.0
    assert settings.index_exclude == ["spec"]
    assert settings.log_level == "DEBUG"
    assert settings.logging_level == logging.DEBUG


@pytest.mark.parametrize(
    "options",
    [
        {"routeFilesPattern": "(unclosed"},
        {"runnerCommand": "bin/rails runner"},
        {"runnerCommand": []},
        {"runnerTimeout": 0},
        {"runnerTimeout": "fast"},
        {"indexExclude": "vendor"},
        {"logLevel": "LOUD"},
    ],
)
def test_invalid_values_keep_defaults(options, caplog):
    with caplog.at_level(logging.WARNING, logger="rubis"):
        settings = Settings.from_initialization_options(options)
    assert settings == Settings()
    assert "Ignoring invalid" in caplog.text


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/app/config/routes.rb", True),
        ("/app/config/routes/admin.rb", True),
        ("/app/config/routes/api/v1.rb", True),
        ("config/routes.rb", True),
        ("C:\\app\\config\\routes.rb", True),
        ("/app/config/routes.rb.bak", False),
        ("/app/config/my_routes.rb", False),
        ("/app/app/models/user.rb", False),
        ("", False),
        (None, False),
    ],
)
def test_is_route_file(path, expected):
    assert Settings().is_route_file(path) is expected


def test_custom_route_pattern():
    settings = Settings(route_files_pattern=r"/routing/.*\.rb$")
    assert settings.is_route_file("/app/routing/admin.rb")
    assert not settings.is_route_file("/app/config/routes.rb")
