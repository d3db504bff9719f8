"""Tests for configuration loading and the command line."""

import json
from pathlib import Path

import pytest

from bluos_client.__main__ import main
from bluos_client.config import Config, load_config_from_json
from bluos_client.util import decode_properties, normalize_mac


def test_defaults() -> None:
    config = Config()
    assert config.http.port == 11000
    assert config.discovery.service_types == ["_musc._tcp.local."]
    assert not config.discovery.resolve_sync_status


def test_load_config(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "app": {"debug": True},
                "discovery": {"timeout": 2.5, "resolve_sync_status": True},
                "http": {"port": 11001},
            }
        ),
        encoding="utf-8",
    )

    config = load_config_from_json(config_path)

    assert config.app.debug
    assert config.discovery.timeout == 2.5
    assert config.discovery.resolve_sync_status
    assert config.http.port == 11001
    assert config.http.timeout == 10.0


def test_load_config_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config_from_json(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        load_config_from_json(broken)


def test_normalize_mac() -> None:
    assert normalize_mac("90:56:82:AA:BB:CC") == "90:56:82:aa:bb:cc"
    assert normalize_mac("90-56-82-aa-bb-cc") == "90:56:82:aa:bb:cc"
    assert normalize_mac("905682AABBCC") == "90:56:82:aa:bb:cc"
    assert normalize_mac(" player-7 ") == "player-7"


def test_decode_properties() -> None:
    assert decode_properties({b"mac": b"90:56:82:AA:BB:CC", b"flag": None}) == {
        "mac": "90:56:82:AA:BB:CC",
        "flag": "",
    }
    assert decode_properties(None) == {}


def test_cli_decode(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    path = tmp_path / "status.xml"
    path.write_text(
        '<status etag="x"><volume>5</volume><db>-50</db><mute>1</mute><quality>mqa</quality></status>',
        encoding="utf-8",
    )

    assert main(["decode", "status", str(path)]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["etag"] == "x"
    assert output["muted"] is True
    assert output["quality"]["category"] == "mqa"


def test_cli_decode_failure(tmp_path: Path) -> None:
    path = tmp_path / "status.xml"
    path.write_text("<status>", encoding="utf-8")

    assert main(["decode", "status", str(path)]) == 1
    assert main(["decode", "status", str(tmp_path / "missing.xml")]) == 1
