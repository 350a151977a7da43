import errno
from pathlib import Path

from contextualizer import (
    Defaults,
    MemoryFileSystem,
    Outcome,
    classify_content,
    classify_file,
)


def test_plain_text():
    assert classify_content(b"hello world") == ("hello world", False)


def test_content_is_not_transformed():
    assert classify_content(b"a\r\nb\n") == ("a\r\nb\n", False)
    assert classify_content("café".encode("utf-8")) == ("café", False)


def test_nul_byte_is_binary():
    assert classify_content(b"a\x00b") == ("", True)


def test_invalid_utf8_is_binary():
    assert classify_content(b"\xff\xfe\xfd") == ("", True)
    # Latin-1 text is a known misclassification
    assert classify_content("café".encode("latin-1")) == ("", True)


def test_nul_sniff_window():
    assert classify_content(b"a" * 1023 + b"\x00")[1] is True
    text, is_binary = classify_content(b"a" * 1024 + b"\x00")
    assert is_binary is False
    assert text == "a" * 1024 + "\x00"


def test_size_gate_is_strict():
    fs = MemoryFileSystem({
        "/p/limit.txt": b"a" * Defaults.MAX_FILE_SIZE,
        "/p/over.txt": b"a" * (Defaults.MAX_FILE_SIZE + 1),
    })
    assert classify_file(fs, Path("/p/limit.txt")).outcome is Outcome.INCLUDE
    assert classify_file(fs, Path("/p/over.txt")).outcome is Outcome.SKIP_TOO_LARGE


def test_oversized_file_is_never_read():
    fs = MemoryFileSystem({"/p/big.txt": b"a" * (Defaults.MAX_FILE_SIZE + 1)})
    fs.fail("/p/big.txt", "read_file", OSError(errno.EIO, "I/O error"))
    assert classify_file(fs, Path("/p/big.txt")).outcome is Outcome.SKIP_TOO_LARGE


def test_read_and_stat_errors():
    denied = PermissionError(errno.EACCES, "Permission denied")
    fs = MemoryFileSystem({"/p/locked.txt": "secret", "/p/gone.txt": "x"})
    fs.fail("/p/locked.txt", "read_file", denied)
    fs.fail("/p/gone.txt", "stat", FileNotFoundError(errno.ENOENT, "No such file"))

    result = classify_file(fs, Path("/p/locked.txt"))
    assert result.outcome is Outcome.SKIP_ERROR
    assert result.error is denied
    assert classify_file(fs, Path("/p/gone.txt")).outcome is Outcome.SKIP_ERROR


def test_binary_file():
    fs = MemoryFileSystem({"/p/data.bin": bytes([0x61, 0x00, 0x62])})
    result = classify_file(fs, Path("/p/data.bin"))
    assert result.outcome is Outcome.SKIP_BINARY
    assert result.content == ""
