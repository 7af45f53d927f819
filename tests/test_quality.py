from __future__ import annotations

import pytest

from engine.quality import (
    AudioProfile,
    VideoProfile,
    parse_audio_profile,
    parse_profile,
    parse_video_profile,
)


@pytest.mark.parametrize("quality,height", [("360", 360), ("480", 480), ("720", 720), ("1080", 1080)])
def test_parse_video_profile_accepts_ladder_rungs(quality, height) -> None:
    assert parse_video_profile(quality) == VideoProfile(max_height=height)


@pytest.mark.parametrize("quality", ["144", "2160", "hd", "", None, "720p", "-1"])
def test_parse_video_profile_unrecognized_values_map_to_lowest_rung(quality) -> None:
    assert parse_video_profile(quality) == VideoProfile(max_height=360)


def test_parse_audio_profile_passes_bitrate_through() -> None:
    assert parse_audio_profile("192") == AudioProfile(bitrate_kbps=192)
    assert parse_audio_profile("999") == AudioProfile(bitrate_kbps=999)
    assert parse_audio_profile(320) == AudioProfile(bitrate_kbps=320)


def test_parse_audio_profile_without_number_uses_default() -> None:
    assert parse_audio_profile(None) == AudioProfile(bitrate_kbps=128)
    assert parse_audio_profile("best") == AudioProfile(bitrate_kbps=128)
    assert parse_audio_profile("0") == AudioProfile(bitrate_kbps=128)


@pytest.mark.parametrize("quality", ["-64", "1.5", "192 or 320", "abc192"])
def test_parse_audio_profile_malformed_hint_uses_default(quality) -> None:
    assert parse_audio_profile(quality) == AudioProfile(bitrate_kbps=128)


@pytest.mark.parametrize("quality,bitrate", [(" 256 ", 256), ("192k", 192), ("320kbps", 320), ("96 kb/s", 96)])
def test_parse_audio_profile_accepts_unit_suffix(quality, bitrate) -> None:
    assert parse_audio_profile(quality) == AudioProfile(bitrate_kbps=bitrate)


def test_parse_profile_dispatches_on_mode() -> None:
    assert parse_profile("audio", "256").extension == "mp3"
    assert parse_profile("VIDEO", "480").extension == "mp4"
    with pytest.raises(ValueError):
        parse_profile("gif", "1")


def test_profiles_describe_themselves() -> None:
    assert AudioProfile(192).describe() == "audio/192kbps"
    assert VideoProfile(720).describe() == "video/720p"
