"""End-to-end tests for the familycal command line."""

import json

import pytest

from familycal.__main__ import main


@pytest.fixture
def cli(tmp_path, monkeypatch):
    monkeypatch.delenv("FAMILYCAL_DATA_PATH", raising=False)
    data_path = tmp_path / "events.json"
    base = ["--config", str(tmp_path / "absent.yaml"), "--data", str(data_path)]

    def _run(*args):
        return main([*base, *args])

    _run.data_path = data_path
    return _run


@pytest.mark.integration
def test_add_list_delete(cli, capsys):
    assert (
        cli(
            "add", "--owner", "home", "--title", "Piano", "--start", "2024-01-01T17:00",
            "--end", "2024-01-01T18:00", "--repeat", "weekly", "--count", "2",
        )
        == 0
    )
    created = capsys.readouterr().out
    series_id = created.strip().rsplit(" ", 1)[1]
    assert json.loads(cli.data_path.read_text())["templates"][0]["id"] == series_id

    assert cli("list", "--owner", "home", "--start", "2024-01-01", "--end", "2024-01-31") == 0
    listing = capsys.readouterr().out
    assert listing.count("Piano") == 2
    assert "Mon 2024-01-08 17:00-18:00" in listing

    assert cli("list", "--owner", "home", "--view", "week", "--date", "2024-01-17") == 0
    assert "No events." in capsys.readouterr().out

    assert cli("delete", series_id) == 0
    assert json.loads(cli.data_path.read_text())["templates"] == []


@pytest.mark.integration
def test_errors_return_nonzero(cli, capsys):
    assert cli("delete", "missing") == 1
    assert "not found" in capsys.readouterr().err

    assert (
        cli("add", "--owner", "home", "--title", "Bad", "--start", "2024-01-01T18:00", "--end", "2024-01-01T17:00")
        == 1
    )

    assert cli("list", "--owner", "home", "--start", "2024-01-01") == 1


@pytest.mark.integration
def test_invalid_date_argument_exits(cli):
    with pytest.raises(SystemExit):
        cli("list", "--owner", "home", "--date", "tomorrow")
