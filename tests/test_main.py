from __future__ import annotations

from unittest.mock import patch

import pytest

from prefix_organizer.__main__ import main


def exit_code(argv) -> int:
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    return excinfo.value.code


def test_help(capsys):
    assert exit_code(["--help"]) == 0
    assert "Usage:" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [["bogus"], ["run", "extra"], ["--config"]])
def test_usage_errors(argv):
    assert exit_code(argv) == 2


def test_defaults_to_run():
    with patch("prefix_organizer.app.App") as app_cls:
        app_cls.return_value.run.return_value = 0
        assert exit_code([]) == 0
    app_cls.assert_called_once_with(None)


def test_config_option_and_once(tmp_path):
    with patch("prefix_organizer.app.App") as app_cls:
        app_cls.return_value.organize_once.return_value = 1
        assert exit_code(["--config", str(tmp_path / "p.yaml"), "once"]) == 1
    app_cls.assert_called_once_with(tmp_path / "p.yaml")


def test_service_dispatch():
    with patch("prefix_organizer.service.main", return_value=0) as service_main:
        assert exit_code(["service", "status"]) == 0
    service_main.assert_called_once_with("status")
