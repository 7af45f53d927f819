from __future__ import annotations

import re

from metadata.naming import (
    FALLBACK_TITLE,
    build_output_filename,
    content_disposition_filename,
    sanitize_title,
    unique_suffix,
)

_SAFE_RE = re.compile(r"^\w+$")


def test_sanitize_title_strips_punctuation_and_joins_words_with_underscores() -> None:
    assert sanitize_title("Rick Astley - Never Gonna Give You Up (Official Video)") == (
        "Rick_Astley_Never_Gonna_Give_You_Up_Official_Video"
    )


def test_sanitize_title_collapses_whitespace_runs() -> None:
    assert sanitize_title("  lots   of\t\nspace  ") == "lots_of_space"


def test_sanitize_title_falls_back_when_nothing_survives() -> None:
    assert sanitize_title("!!! ??? ***") == FALLBACK_TITLE
    assert sanitize_title("") == FALLBACK_TITLE
    assert sanitize_title(None) == FALLBACK_TITLE


def test_sanitize_title_output_is_safe_and_deterministic() -> None:
    samples = [
        'A<>:"/\\|?*rtist.',
        "日本語のタイトル 2024",
        "emoji 🎵 track",
        "tabs\tand/slashes",
        "___",
    ]
    for sample in samples:
        first = sanitize_title(sample)
        assert first
        assert _SAFE_RE.match(first), first
        assert sanitize_title(sample) == first


def test_build_output_filename_uses_title_suffix_and_extension() -> None:
    assert build_output_filename("My Song!", "mp3", suffix="1700000000000") == "My_Song-1700000000000.mp3"
    assert build_output_filename("clip", ".mp4", suffix="x") == "clip-x.mp4"


def test_build_output_filename_truncates_long_titles() -> None:
    name = build_output_filename("word " * 200, "mp3", suffix="s")
    stem = name.rsplit("-", 1)[0]
    assert len(stem.encode("utf-8")) <= 200
    assert name.endswith("-s.mp3")


def test_build_output_filename_bounds_multibyte_titles_in_bytes() -> None:
    name = build_output_filename("日本語のとても長いタイトル" * 12, "mp3")

    assert len(name.encode("utf-8")) <= 255
    assert name.startswith("日本語の")
    assert name.endswith(".mp3")
    stem = name.rsplit("-", 1)[0]
    assert _SAFE_RE.match(stem)


def test_build_output_filename_cuts_at_character_boundary() -> None:
    name = build_output_filename("é" * 150, "mp4", suffix="s")

    assert name == "é" * 100 + "-s.mp4"


def test_unique_suffix_differs_between_calls() -> None:
    suffixes = {unique_suffix() for _ in range(50)}
    assert len(suffixes) == 50


def test_content_disposition_filename_removes_quotes_and_newlines() -> None:
    assert content_disposition_filename('a"b\nc.mp3') == "a'b c.mp3"
    assert content_disposition_filename("  ") == "download"
