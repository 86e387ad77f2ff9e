"""Tests for the command-line entry point."""

import base64
import json
from unittest.mock import MagicMock, patch

import pytest

import media_namer
from config import DEFAULT_CONFIG_DATA


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"retry": {"max_retries": 0, "base_delay": 0}}))
    return str(path)


@pytest.fixture
def client():
    fake = MagicMock()
    fake.generate.return_value = {"response": "DESC1: sunny beach"}
    with patch("media_namer.create_client", return_value=fake):
        yield fake


def test_parser_flags():
    args = media_namer.build_parser(DEFAULT_CONFIG_DATA).parse_args(
        ["photos", "--strategy", "keyframes", "--batch-size", "8", "--dry-run", "--skip-extensions", ".gif"])

    assert args.paths == ["photos"]
    assert args.strategy == "keyframes"
    assert args.batch_size == 8
    assert args.dry_run is True
    assert args.skip_extensions == [".gif"]


@pytest.mark.parametrize("argv, expected", [
    (["x", "--config", "custom.json"], "custom.json"),
    (["--config=other.json", "x"], "other.json"),
    (["x"], "config.json"),
])
def test_config_path_from_argv(argv, expected):
    assert media_namer.config_path_from_argv(argv) == expected


def test_renames_folder(tmp_path, config_file, client, capsys):
    photos = tmp_path / "photos"
    photos.mkdir()
    (photos / "IMG_0001.jpg").write_bytes(b"jpeg")

    code = media_namer.main([str(photos), "--config", config_file])

    assert code == 0
    assert (photos / "sunny_beach.jpg").exists()
    assert client.generate.call_args.kwargs["model"] == "llava:latest"
    assert "IMG_0001.jpg -> sunny_beach.jpg" in capsys.readouterr().out


def test_dry_run_keeps_files(tmp_path, config_file, client, capsys):
    image = tmp_path / "IMG_0001.jpg"
    image.write_bytes(b"jpeg")

    code = media_namer.main([str(image), "--config", config_file, "--dry-run"])

    assert code == 0
    assert image.exists()
    assert "would become sunny_beach.jpg" in capsys.readouterr().out


def test_failed_files_exit_one(tmp_path, config_file, client):
    image = tmp_path / "IMG_0001.jpg"
    image.write_bytes(b"jpeg")
    client.generate.side_effect = ConnectionError("refused")

    assert media_namer.main([str(image), "--config", config_file]) == 1
    assert image.exists()


def test_missing_path_exits_two(tmp_path, config_file, client):
    assert media_namer.main([str(tmp_path / "nowhere"), "--config", config_file]) == 2
    client.list.assert_not_called()


def test_invalid_setting_exits_two(tmp_path, config_file, client):
    assert media_namer.main([str(tmp_path), "--config", config_file, "--batch-size", "0"]) == 2


def test_unreachable_server_exits_two(tmp_path, config_file, client):
    image = tmp_path / "IMG_0001.jpg"
    image.write_bytes(b"jpeg")
    client.list.side_effect = ConnectionError("refused")

    assert media_namer.main([str(image), "--config", config_file]) == 2
    client.generate.assert_not_called()


def test_empty_folder_is_not_an_error(tmp_path, config_file, client):
    empty = tmp_path / "empty"
    empty.mkdir()

    assert media_namer.main([str(empty), "--config", config_file]) == 0


def test_no_optimize_sends_file_bytes(tmp_path, config_file, client, make_image):
    image = make_image(tmp_path / "IMG_0002.png", size=(2400, 1600))

    assert media_namer.main([str(image), "--config", config_file, "--no-optimize", "--dry-run"]) == 0
    sent = client.generate.call_args.kwargs["images"][0]
    assert base64.b64decode(sent) == image.read_bytes()
