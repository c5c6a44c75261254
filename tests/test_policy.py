import random

import pytest

from repoimport.ingestion.policy import (
    BLOCKED_EXTENSIONS,
    MAX_FILE_COUNT,
    MAX_SINGLE_FILE_BYTES,
    AdmissionReason,
    evaluate,
    guess_mime_type,
    is_blocked_extension,
    sanitize_path,
)

_SEGMENTS = ["src", "..", ".", "a b", "x.py", "C:", "d:", "", "...", "..a", "é"]
_SEPARATORS = ["/", "\\"]


def _random_path(rng: random.Random) -> str:
    parts = [rng.choice(_SEGMENTS) for _ in range(rng.randint(1, 6))]
    path = parts[0]
    for part in parts[1:]:
        path += rng.choice(_SEPARATORS) + part
    if rng.random() < 0.2:
        path = rng.choice(_SEPARATORS) + path
    return path


def test_sanitize_path_fuzz() -> None:
    rng = random.Random(1337)
    for _ in range(5000):
        raw = _random_path(rng)
        segments = raw.replace("\\", "/").split("/")
        traversal = ".." in segments
        absolute = raw.replace("\\", "/").startswith("/") or (
            len(raw) >= 2 and raw[0].isalpha() and raw[0].isascii() and raw[1] == ":"
        )
        result = sanitize_path(raw)
        if traversal or absolute:
            assert result is None, raw
        else:
            assert result == raw.replace("\\", "/")


@pytest.mark.parametrize(
    "raw",
    ["../etc/passwd", "a/../../b", "a\\..\\b", "/etc/passwd", "\\windows\\system32", "C:/boot.ini", "z:file"],
)
def test_sanitize_path_rejects(raw: str) -> None:
    assert sanitize_path(raw) is None


def test_sanitize_path_normalizes_backslashes() -> None:
    assert sanitize_path("src\\lib\\mod.py") == "src/lib/mod.py"
    assert sanitize_path("..hidden/file") == "..hidden/file"


@pytest.mark.parametrize("name", ["x.exe", "x.EXE", "dir/run.Sh", "lib.so", "a/b/c.Ps1"])
def test_blocked_extensions_case_insensitive(name: str) -> None:
    assert is_blocked_extension(name)


@pytest.mark.parametrize("name", ["README.md", "script.shx", "exe", "dir.exe/readme.txt", ".sh"])
def test_allowed_extensions(name: str) -> None:
    assert not is_blocked_extension(name)


def test_block_list_is_fixed() -> None:
    assert len(BLOCKED_EXTENSIONS) == 14


def test_evaluate_order_path_before_extension() -> None:
    decision = evaluate("../evil.exe", 10, 0)
    assert decision.reason is AdmissionReason.PATH_TRAVERSAL


def test_evaluate_extension_before_size() -> None:
    decision = evaluate("big.exe", MAX_SINGLE_FILE_BYTES + 1, 0)
    assert decision.reason is AdmissionReason.BLOCKED_EXTENSION


def test_evaluate_size_before_count() -> None:
    decision = evaluate("big.txt", MAX_SINGLE_FILE_BYTES + 1, MAX_FILE_COUNT)
    assert decision.reason is AdmissionReason.TOO_LARGE


def test_evaluate_count_before_empty() -> None:
    decision = evaluate("empty.txt", 0, MAX_FILE_COUNT)
    assert decision.reason is AdmissionReason.COUNT_LIMIT_REACHED


def test_evaluate_empty_and_ok() -> None:
    assert evaluate("empty.txt", 0, 0).reason is AdmissionReason.EMPTY
    ok = evaluate("src\\main.py", MAX_SINGLE_FILE_BYTES, MAX_FILE_COUNT - 1)
    assert ok.admit
    assert ok.normalized_path == "src/main.py"


def test_guess_mime_type() -> None:
    assert guess_mime_type("src/app.js") == "text/javascript"
    assert guess_mime_type("README.MD") == "text/markdown"
    assert guess_mime_type(".gitignore") == "text/plain"
    assert guess_mime_type("data.unknown") == "application/octet-stream"
