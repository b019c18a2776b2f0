"""
Record splitting helpers for git's line-oriented text output.

git terminates every record with a delimiter, so a naive split leaves an
empty trailing artifact. These helpers drop that artifact while keeping a
final record whose delimiter went missing (truncated or partial output).
"""

from typing import List, Optional, Tuple

from ..errors import ParseFailureError

LINE_SEPARATOR = "\n"
BLOCK_SEPARATOR = "\n\n"


def split_lines(text: str) -> List[str]:
    """Split text into lines without the trailing empty artifact.

    Args:
        text: Raw output, normally newline-terminated

    Returns:
        Lines in output order; [] for empty input
    """
    if not text:
        return []
    lines = text.split(LINE_SEPARATOR)
    if lines[-1] == "":
        lines.pop()
    return lines


def count_records(text: str) -> int:
    """Count newline-delimited records in text."""
    return len(split_lines(text))


def split_blocks(text: str) -> List[str]:
    """Split text into blank-line separated blocks.

    Empty blocks (runs of blank lines, a trailing separator) are dropped.
    """
    if not text:
        return []
    return [block for block in text.split(BLOCK_SEPARATOR) if block.strip()]


def read_header(block: str) -> Tuple[str, str]:
    """Read the first complete line of a block.

    Args:
        block: A block whose first line is a header

    Returns:
        Tuple of (header line without terminator, remainder of the block)

    Raises:
        ParseFailureError: If the block has no complete header line
    """
    header, separator, rest = block.partition(LINE_SEPARATOR)
    if not separator:
        raise ParseFailureError(f"Block has no header line: {block[:80]!r}")
    return header, rest


def split_fields(line: str, separator: Optional[str] = None, maxsplit: int = -1) -> List[str]:
    """Split a line into fields.

    With no separator the line is split on runs of whitespace and leading or
    trailing whitespace is ignored.
    """
    if separator is None:
        return line.split(None, maxsplit)
    return line.split(separator, maxsplit)


def split_key_value(line: str, separator: str = "=") -> Tuple[str, Optional[str]]:
    """Split an INI-style assignment into a stripped (key, value) pair.

    value is None when the line holds no separator.
    """
    key, found, value = line.partition(separator)
    if not found:
        return key.strip(), None
    return key.strip(), value.strip()
