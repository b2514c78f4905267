"""
Structured documents -- markdown with a YAML preamble.

Every Claude Code asset (SKILL.md, agents/*.md, commands/*.md) is a text
document with an optional delimiter-fenced key/value block on top:

    ---
    name: code-reviewer
    tools: Read, Grep, Glob
    ---

    Free-form body.

The parser never raises on structurally incomplete input. A missing or
unterminated fence, or a block that does not decode to a mapping, yields
an empty preamble and the whole input as body.
"""

import contextlib
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DELIMITER = "---"
LIST_SEPARATOR = ","

_FENCED_BLOCK = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$\n?",
    re.DOTALL | re.MULTILINE,
)


@dataclass
class StructuredDocument:
    """A parsed asset document."""

    preamble: dict[str, Any] = field(default_factory=dict)
    body: str = ""


def parse_document(text: str) -> StructuredDocument:
    """Split a document into its preamble mapping and body.

    Args:
        text: Full document text.

    Returns:
        StructuredDocument. Without a valid preamble, body is ``text`` as is.
    """
    match = _FENCED_BLOCK.match(text)
    if not match:
        return StructuredDocument(preamble={}, body=text)

    try:
        preamble = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return StructuredDocument(preamble={}, body=text)

    if preamble is None:
        preamble = {}
    elif not isinstance(preamble, dict):
        return StructuredDocument(preamble={}, body=text)

    body = text[match.end():]
    # At most one blank separator line belongs to the fence
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]

    return StructuredDocument(preamble=preamble, body=body)


def serialize_document(preamble: dict[str, Any], body: str) -> str:
    """Emit a fenced preamble followed by the body.

    Keys whose value is None are omitted, so callers can build the
    preamble field by field and only persist what was actually set.
    Key order is preserved, which keeps output byte-stable across runs.
    """
    clean = {key: value for key, value in preamble.items() if value is not None}
    block = ""
    if clean:
        block = yaml.safe_dump(
            clean,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
            width=4096,
        )
    return f"{DELIMITER}\n{block}{DELIMITER}\n\n{body}"


def read_document(path: Path) -> StructuredDocument:
    """Read a UTF-8 file and parse it.

    Raises:
        OSError: If the file cannot be read.
        UnicodeDecodeError: If the file is not valid UTF-8.
    """
    return parse_document(path.read_text(encoding="utf-8"))


def parse_comma_separated(value: Any) -> list[str]:
    """Decode a comma-separated preamble value into a list of strings.

    >>> parse_comma_separated("Read, Write, Edit")
    ['Read', 'Write', 'Edit']

    A YAML list is accepted too and normalized the same way.
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item) for item in value if item is not None]
    else:
        items = str(value).split(LIST_SEPARATOR)
    return [item.strip() for item in items if item.strip()]


def kebab_to_camel(value: str) -> str:
    """``allowed-tools`` -> ``allowedTools``."""
    return re.sub(r"-([a-z])", lambda m: m.group(1).upper(), value)


def camel_to_kebab(value: str) -> str:
    """``permissionMode`` -> ``permission-mode``."""
    return re.sub(r"([a-z])([A-Z])", r"\1-\2", value).lower()


def kebab_to_snake(value: str) -> str:
    """``code-review`` -> ``code_review`` (lowercased)."""
    return value.lower().replace("-", "_")


def extract_name_from_path(path: str | Path) -> str:
    """Base name of a path without directories or extension."""
    return Path(path).stem


def is_safe_file_name(name: str) -> bool:
    """True when ``name`` can be used as a single file name component.

    Rejects empty names, path separators, NUL bytes and the ``.``/``..``
    components, so a preamble ``name`` cannot escape its output directory.
    """
    if not name or name in (".", ".."):
        return False
    return not any(char in name for char in ("/", "\\", "\x00")) and ".." not in name


def write_text_atomic(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` in one rename.

    The text goes to a temporary file in the same directory first, so a
    reader never observes a half-written document.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
