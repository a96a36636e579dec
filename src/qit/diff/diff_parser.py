"""
Unified diff parsing.

:func:`parse_unified_diff` splits the output of ``git diff`` into one
:class:`FileDiff` per path and each file into :class:`~qit.changes.model.Hunk`
objects. Parsing is strict: header lines must belong to a known set and hunk
bodies must match the line counts announced in their ``@@`` header. Anything
else raises :class:`DiffParseError` rather than guessing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from qit.changes.model import Hunk


HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

# Extended header lines that carry nothing the scanner needs beyond being
# replayed in a rebuilt patch.
PASSTHROUGH_HEADERS = (
    "index ",
    "old mode ",
    "new mode ",
    "similarity index ",
    "dissimilarity index ",
)

_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "t": "\t",
    "n": "\n",
    "v": "\v",
    "f": "\f",
    "r": "\r",
    '"': '"',
    "\\": "\\",
}


class DiffParseError(Exception):
    """Raised when diff text does not have the expected shape."""

    pass


@dataclass
class FileDiff:
    """Diff of a single path as printed by ``git diff``."""

    old_path: Optional[str]
    new_path: Optional[str]
    header: List[str] = field(default_factory=list)
    hunks: List[Hunk] = field(default_factory=list)
    binary: bool = False
    new_file: bool = False
    deleted_file: bool = False
    renamed: bool = False
    copied: bool = False

    @property
    def path(self) -> str:
        return self.new_path or self.old_path or ""


def unquote_path(value: str) -> str:
    """Undo Git's C-style quoting of a path, if present."""
    if len(value) < 2 or value[0] != '"' or value[-1] != '"':
        return value
    body = value[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt in "01234567":
                out.append(int(body[i + 1 : i + 4], 8) & 0xFF)
                i += 4
                continue
            out += _ESCAPES.get(nxt, nxt).encode("utf-8")
            i += 2
            continue
        out += ch.encode("utf-8", "surrogateescape")
        i += 1
    return out.decode("utf-8", "surrogateescape")


def _strip_prefix(value: str, prefix: str) -> Optional[str]:
    # Git appends a tab to ---/+++ names that contain spaces.
    value = unquote_path(value.rstrip("\t"))
    if value == "/dev/null":
        return None
    if value.startswith(prefix):
        return value[len(prefix) :]
    return value


def _split_quoted(rest: str) -> Tuple[str, str]:
    i = 1
    while i < len(rest):
        if rest[i] == "\\":
            i += 2
            continue
        if rest[i] == '"':
            break
        i += 1
    return rest[: i + 1], rest[i + 1 :].lstrip(" ")


def _split_git_header(rest: str) -> Tuple[Optional[str], Optional[str]]:
    """Split the ``a/... b/...`` part of a ``diff --git`` line.

    Returns ``(None, None)`` when the split is ambiguous; the ``---``,
    ``+++`` or rename lines that follow then supply the paths.
    """
    if rest.startswith('"'):
        first, second = _split_quoted(rest)
        return _strip_prefix(first, "a/"), _strip_prefix(second, "b/")
    half = (len(rest) - 1) // 2
    first, second = rest[:half], rest[half + 1 :]
    if first.startswith("a/") and second.startswith("b/") and first[2:] == second[2:]:
        return first[2:], second[2:]
    if second.startswith('"'):
        return None, None
    marker = rest.rfind(" b/")
    if rest.startswith("a/") and marker > 0:
        return rest[2:marker], rest[marker + 3 :]
    return None, None


def _parse_hunk(lines: List[str], i: int) -> Tuple[Hunk, int]:
    match = HUNK_HEADER.match(lines[i])
    if match is None:
        raise DiffParseError(f"line {i + 1}: malformed hunk header {lines[i]!r}")
    old_start = int(match.group(1))
    old_count = int(match.group(2)) if match.group(2) is not None else 1
    new_start = int(match.group(3))
    new_count = int(match.group(4)) if match.group(4) is not None else 1

    body = [lines[i]]
    i += 1
    old_left, new_left = old_count, new_count
    while old_left > 0 or new_left > 0:
        if i >= len(lines):
            raise DiffParseError(f"hunk at {body[0]!r} is truncated")
        line = lines[i]
        tag = line[:1]
        if tag == " ":
            old_left -= 1
            new_left -= 1
        elif tag == "-":
            old_left -= 1
        elif tag == "+":
            new_left -= 1
        elif tag != "\\":
            raise DiffParseError(f"line {i + 1}: unexpected line in hunk {line!r}")
        if old_left < 0 or new_left < 0:
            raise DiffParseError(f"line {i + 1}: hunk body exceeds its header counts")
        body.append(line)
        i += 1
    # "\ No newline at end of file" markers trail the last counted line.
    while i < len(lines) and lines[i].startswith("\\"):
        body.append(lines[i])
        i += 1

    hunk = Hunk(
        old_start=old_start,
        old_count=old_count,
        start_line=new_start,
        line_count=new_count,
        diff_text="\n".join(body) + "\n",
    )
    return hunk, i


def _parse_file(lines: List[str], i: int) -> Tuple[FileDiff, int]:
    old_path, new_path = _split_git_header(lines[i][len("diff --git ") :])
    fd = FileDiff(old_path=old_path, new_path=new_path, header=[lines[i]])
    i += 1

    while i < len(lines) and not lines[i].startswith(("@@ ", "diff --git ")):
        line = lines[i]
        if line.startswith("--- "):
            fd.old_path = _strip_prefix(line[4:], "a/")
        elif line.startswith("+++ "):
            fd.new_path = _strip_prefix(line[4:], "b/")
        elif line.startswith("new file mode "):
            fd.new_file = True
            fd.old_path = None
        elif line.startswith("deleted file mode "):
            fd.deleted_file = True
            fd.new_path = None
        elif line.startswith("rename from "):
            fd.renamed = True
            fd.old_path = unquote_path(line[len("rename from ") :])
        elif line.startswith("rename to "):
            fd.new_path = unquote_path(line[len("rename to ") :])
        elif line.startswith("copy from "):
            fd.copied = True
            fd.old_path = unquote_path(line[len("copy from ") :])
        elif line.startswith("copy to "):
            fd.new_path = unquote_path(line[len("copy to ") :])
        elif line.startswith("Binary files ") and line.endswith(" differ"):
            fd.binary = True
        elif not line.startswith(PASSTHROUGH_HEADERS):
            raise DiffParseError(f"line {i + 1}: unrecognized diff header {line!r}")
        fd.header.append(line)
        i += 1

    while i < len(lines) and lines[i].startswith("@@ "):
        hunk, i = _parse_hunk(lines, i)
        fd.hunks.append(hunk)

    if not fd.path:
        raise DiffParseError(f"could not determine path for {fd.header[0]!r}")
    return fd, i


def parse_unified_diff(text: str) -> List[FileDiff]:
    """Parse ``git diff`` output into per-file diffs.

    Parameters
    ----------
    text : str
        Output of ``git diff`` in the default patch format.

    Returns
    -------
    List[FileDiff]
        One entry per ``diff --git`` section, in output order.

    Raises
    ------
    DiffParseError
        If the text contains anything the parser does not recognize.
    """
    # split("\n") rather than splitlines() keeps carriage returns inside lines.
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    files: List[FileDiff] = []
    i = 0
    while i < len(lines):
        if not lines[i].startswith("diff --git "):
            raise DiffParseError(f"line {i + 1}: expected 'diff --git', got {lines[i]!r}")
        fd, i = _parse_file(lines, i)
        files.append(fd)
    return files


def build_patch(header: List[str], hunks: List[Hunk]) -> str:
    """Rebuild a single-file patch from its header and a subset of hunks."""
    return "\n".join(header) + "\n" + "".join(h.diff_text for h in hunks)
