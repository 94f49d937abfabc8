import sys
from pathlib import Path

import pytest

from upcscan.config import (
    ENV_FILE_NAME,
    LOOKUP_URL_ENV,
    REQUEST_TIMEOUT_ENV,
    AppConfig,
    CameraFacing,
    ConfigRepository,
    DebugOverlay,
    SessionConfig,
    SymbolFormat,
    bundled_env_file,
    load_app_config,
)


def _clear_env(monkeypatch: pytest.MonkeyPatch, *names: str) -> None:
    # setenv first so the variable is removed again on undo even if a .env file sets it
    for name in names:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_config_repository_roundtrip(tmp_path: Path) -> None:
    repo = ConfigRepository(path=tmp_path / "config.json")
    config = AppConfig(
        lookup_url="https://hooks.example.com/upc",
        request_timeout=4.5,
        notification_duration_ms=3000,
        camera_index=1,
        session=SessionConfig(
            width=1280,
            height=720,
            facing=CameraFacing.USER,
            formats=(SymbolFormat.UPC, SymbolFormat.EAN),
            locate=False,
            num_workers=4,
            frequency=5,
            debug=DebugOverlay(draw_bounding_box=False, show_pattern=True),
        ),
    )

    repo.save(config)
    loaded = repo.load()

    assert loaded == config
    assert loaded.session.formats == (SymbolFormat.UPC, SymbolFormat.EAN)
    assert loaded.session.facing is CameraFacing.USER


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    config = ConfigRepository(path=tmp_path / "absent.json").load()

    assert config.lookup_url is None
    assert config.session.width == 640
    assert config.session.height == 480
    assert config.session.facing is CameraFacing.ENVIRONMENT
    assert len(config.session.formats) == 8
    assert config.session.num_workers == 2


@pytest.mark.parametrize(
    "kwargs",
    [
        {"width": 0},
        {"formats": ()},
        {"num_workers": 0},
        {"frequency": 0},
    ],
)
def test_session_config_validation(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        SessionConfig(**kwargs)


def test_blank_lookup_url_is_treated_as_unset() -> None:
    assert AppConfig(lookup_url="   ").lookup_url is None
    with pytest.raises(ValueError):
        AppConfig(request_timeout=0)


def test_environment_overrides_stored_endpoint(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    repo = ConfigRepository(path=tmp_path / "config.json")
    repo.save(AppConfig(lookup_url="https://stored.example.com"))
    _clear_env(monkeypatch, LOOKUP_URL_ENV, REQUEST_TIMEOUT_ENV)
    monkeypatch.setenv(LOOKUP_URL_ENV, "https://env.example.com/lookup")
    monkeypatch.setenv(REQUEST_TIMEOUT_ENV, "2.5")

    config = load_app_config(repository=repo, env_file=tmp_path / "missing.env")

    assert config.lookup_url == "https://env.example.com/lookup"
    assert config.request_timeout == 2.5


def test_dotenv_file_supplies_endpoint(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch, LOOKUP_URL_ENV, REQUEST_TIMEOUT_ENV)
    env_file = tmp_path / ".env"
    env_file.write_text(f"{LOOKUP_URL_ENV}=https://dotenv.example.com/upc\n", encoding="utf-8")

    config = load_app_config(repository=ConfigRepository(path=tmp_path / "config.json"), env_file=env_file)

    assert config.lookup_url == "https://dotenv.example.com/upc"
    assert config.request_timeout == 10.0


@pytest.mark.parametrize("value", ["0", "-3", "nan", "soon"])
def test_invalid_timeout_override_is_rejected(value: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch, LOOKUP_URL_ENV, REQUEST_TIMEOUT_ENV)
    monkeypatch.setenv(REQUEST_TIMEOUT_ENV, value)

    with pytest.raises(ValueError):
        load_app_config(repository=ConfigRepository(path=tmp_path / "config.json"), env_file=tmp_path / "missing.env")


def test_bundled_env_file_only_inside_frozen_app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ENV_FILE_NAME).write_text(f"{LOOKUP_URL_ENV}=https://bundle.example.com\n", encoding="utf-8")
    monkeypatch.setattr(sys, "_MEIPASS", str(tmp_path), raising=False)
    monkeypatch.delattr(sys, "frozen", raising=False)
    assert bundled_env_file() is None

    monkeypatch.setattr(sys, "frozen", True, raising=False)
    assert bundled_env_file() == tmp_path / ENV_FILE_NAME

    _clear_env(monkeypatch, LOOKUP_URL_ENV, REQUEST_TIMEOUT_ENV)
    config = load_app_config(repository=ConfigRepository(path=tmp_path / "config.json"))
    assert config.lookup_url == "https://bundle.example.com"
