"""Unit tests for open-mode parsing."""

import pytest

from bucketfs.domain.errors import (
    ModeConflictError,
    ModeNotSupportedError,
    StreamModeError,
)
from bucketfs.domain.modes import OpenMode


@pytest.mark.parametrize(
    ("mode", "expected"),
    [
        ("r", OpenMode.READ),
        ("rb", OpenMode.READ),
        ("rt", OpenMode.READ),
        ("w", OpenMode.WRITE),
        ("wb", OpenMode.WRITE),
        ("a", OpenMode.APPEND),
        ("x", OpenMode.CREATE_EXCLUSIVE),
        ("xb", OpenMode.CREATE_EXCLUSIVE),
    ],
)
def test_parse_accepts_single_mode(mode, expected):
    assert OpenMode.parse(mode) is expected


@pytest.mark.parametrize("mode", ["rw", "r+", "w+", "a+", "rb+", "ra", "rx"])
def test_read_write_combinations_conflict(mode):
    with pytest.raises(ModeConflictError) as excinfo:
        OpenMode.parse(mode)
    assert "Cannot simultaneously read and write" in str(excinfo.value)


@pytest.mark.parametrize("mode", ["", "b", "q", "wa", "c"])
def test_other_modes_are_not_supported(mode):
    with pytest.raises(ModeNotSupportedError):
        OpenMode.parse(mode)


def test_mode_errors_share_a_base():
    assert issubclass(ModeConflictError, StreamModeError)
    assert issubclass(ModeNotSupportedError, StreamModeError)


def test_is_write():
    assert not OpenMode.READ.is_write
    assert all(m.is_write for m in (OpenMode.WRITE, OpenMode.APPEND, OpenMode.CREATE_EXCLUSIVE))
