from __future__ import annotations

import asyncio
import importlib
import sys

import pytest

import config.settings as settings
import engine.acquirer as acquirer
import engine.resolver as resolver
from engine.paths import build_engine_paths
from engine.quality import AudioProfile


def test_build_runtime_config_is_empty_without_overrides(monkeypatch) -> None:
    monkeypatch.setattr(settings, "YTDLP_COOKIEFILE", None)
    monkeypatch.setattr(settings, "YTDLP_PROXY", None)
    monkeypatch.setattr(settings, "YTDLP_SOURCE_ADDRESS", None)
    monkeypatch.setattr(settings, "YTDLP_FORCE_IPV4", False)

    assert settings.build_runtime_config() == {"yt_dlp_opts": {}}


def test_runtime_overrides_reach_probe_and_download_opts(monkeypatch) -> None:
    monkeypatch.setattr(settings, "YTDLP_COOKIEFILE", "/secrets/cookies.txt")
    monkeypatch.setattr(settings, "YTDLP_PROXY", "socks5://127.0.0.1:9050")
    monkeypatch.setattr(settings, "YTDLP_SOURCE_ADDRESS", None)
    monkeypatch.setattr(settings, "YTDLP_FORCE_IPV4", True)

    config = settings.build_runtime_config()
    download_opts = acquirer.build_ytdlp_opts(AudioProfile(), "/tmp/%(id)s.%(ext)s", config=config)
    probe_opts = resolver.build_probe_opts(config)

    for opts in (download_opts, probe_opts):
        assert opts["cookiefile"] == "/secrets/cookies.txt"
        assert opts["proxy"] == "socks5://127.0.0.1:9050"
        assert opts["forceipv4"] is True
        assert "source_address" not in opts


def test_startup_wires_runtime_config_into_worker(monkeypatch, tmp_path) -> None:
    pytest.importorskip("fastapi")
    monkeypatch.setattr(settings, "YTDLP_PROXY", "http://proxy.internal:3128")
    sys.modules.pop("api.main", None)
    module = importlib.import_module("api.main")
    paths = build_engine_paths(downloads_dir=tmp_path / "downloads", log_dir=tmp_path / "logs")
    monkeypatch.setattr(module, "build_engine_paths", lambda: paths)
    monkeypatch.setattr(module, "_setup_logging", lambda log_dir: None)

    asyncio.run(module.startup())

    worker = module.app.state.worker
    assert worker._config["yt_dlp_opts"]["proxy"] == "http://proxy.internal:3128"
