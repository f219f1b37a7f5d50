"""
Conversion between Windows registry values and Python strings.

Pure functions only, so they can be tested on any platform. Registry
strings are UTF-16-LE with a terminating NUL; ``winreg`` usually hands
back ``str`` already, but raw ``bytes`` are accepted as well.
"""

from typing import Optional, Union

# Values of winreg.REG_SZ and winreg.REG_EXPAND_SZ
REG_SZ = 1
REG_EXPAND_SZ = 2

PATH_SEPARATOR = ";"


def is_string_type(value_type: int) -> bool:
    return value_type in (REG_SZ, REG_EXPAND_SZ)


def decode_value(value: Union[str, bytes, None], value_type: int) -> Optional[str]:
    """
    Decode a registry value to a string.

    Returns None when the value is not a string type; callers must then
    leave the value alone rather than overwrite it.
    """
    if not is_string_type(value_type):
        return None
    if value is None:
        return ""
    if isinstance(value, bytes):
        if len(value) % 2:
            value = value[:-1]
        value = value.decode("utf-16-le", errors="replace")
    if not isinstance(value, str):
        return None
    return value.rstrip("\0")


def encode_value(text: str) -> bytes:
    """UTF-16-LE bytes of ``text`` with a terminating NUL."""
    return (text + "\0").encode("utf-16-le")


def split_segments(path_value: str) -> list[str]:
    return path_value.split(PATH_SEPARATOR) if path_value else []


def find_segment(path_value: str, segment: str) -> Optional[int]:
    """Index of the first ``;``-delimited entry equal to ``segment``."""
    try:
        return split_segments(path_value).index(segment)
    except ValueError:
        return None


def insert_segment(path_value: str, segment: str) -> str:
    """Prepend ``segment`` unless an identical entry already exists."""
    if find_segment(path_value, segment) is not None:
        return path_value
    if not path_value:
        return segment
    return f"{segment}{PATH_SEPARATOR}{path_value}"


def remove_segment(path_value: str, segment: str) -> str:
    """Drop every entry equal to ``segment``; all other entries are kept verbatim."""
    parts = split_segments(path_value)
    kept = [part for part in parts if part != segment]
    if len(kept) == len(parts):
        return path_value
    return PATH_SEPARATOR.join(kept)
