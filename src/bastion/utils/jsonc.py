"""JSON-with-comments loading for editor and compiler config files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

JSONC_NAMES = frozenset({"jsconfig.json", ".eslintrc.json", ".eslintrc"})


def is_jsonc_file(path: Path) -> bool:
    """True for files whose tools accept comments and trailing commas."""
    name = path.name
    if name in JSONC_NAMES:
        return True
    if name.startswith("tsconfig") and name.endswith(".json"):
        return True
    return path.parent.name == ".vscode" and name.endswith(".json")


def _strip_comments(text: str) -> str:
    out: list[str] = []
    i = 0
    length = len(text)
    in_string = False
    while i < length:
        char = text[i]
        if in_string:
            out.append(char)
            if char == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue
        if char == '"':
            in_string = True
            out.append(char)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            chunk = text[i:] if end == -1 else text[i : end + 2]
            # Keep newlines so decode errors still point at the right line
            out.append("\n" * chunk.count("\n"))
            i = length if end == -1 else end + 2
        else:
            out.append(char)
            i += 1
    return "".join(out)


def _strip_trailing_commas(text: str) -> str:
    out: list[str] = []
    in_string = False
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if in_string:
            out.append(char)
            if char == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
        elif char == '"':
            in_string = True
            out.append(char)
        elif char == ",":
            j = i + 1
            while j < length and text[j].isspace():
                j += 1
            if j >= length or text[j] not in "}]":
                out.append(char)
        else:
            out.append(char)
        i += 1
    return "".join(out)


def loads_jsonc(text: str) -> Any:
    """Parse JSON text that may carry comments and trailing commas.

    Raises:
        json.JSONDecodeError: The text is malformed even after cleanup
    """
    return json.loads(_strip_trailing_commas(_strip_comments(text)))


def load_json_file(path: Path) -> Any:
    """Load *path* as JSON, tolerating comments where its tools do."""
    text = path.read_text(encoding="utf-8-sig")
    if is_jsonc_file(path):
        return loads_jsonc(text)
    return json.loads(text)
