"""
Permissive JSON reader for turbo.json / turbo.jsonc.

Accepts `//` and `/* */` comments and trailing commas. Both are blanked out
with spaces (newlines kept) before handing the text to the json module, so
error positions still point into the original file.
"""

from __future__ import annotations

import json
from typing import Any

from turbo_mcp.errors import ConfigParseError


def strip_comments(text: str) -> str:
    """Replace comments outside strings with whitespace of the same shape."""
    out = list(text)
    i = 0
    n = len(text)
    in_string = False

    while i < n:
        c = text[i]
        if in_string:
            if c == "\\":
                i += 2
                continue
            if c == '"':
                in_string = False
            i += 1
            continue

        if c == '"':
            in_string = True
            i += 1
        elif c == "/" and i + 1 < n and text[i + 1] == "/":
            while i < n and text[i] != "\n":
                out[i] = " "
                i += 1
        elif c == "/" and i + 1 < n and text[i + 1] == "*":
            end = text.find("*/", i + 2)
            stop = n if end == -1 else end + 2
            for j in range(i, stop):
                if text[j] != "\n":
                    out[j] = " "
            i = stop
        else:
            i += 1

    return "".join(out)


def strip_trailing_commas(text: str) -> str:
    """Blank commas that directly precede a closing bracket or brace."""
    out = list(text)
    n = len(text)
    in_string = False
    i = 0

    while i < n:
        c = text[i]
        if in_string:
            if c == "\\":
                i += 2
                continue
            if c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == ",":
            j = i + 1
            while j < n and text[j] in " \t\r\n":
                j += 1
            if j < n and text[j] in "}]":
                out[i] = " "
        i += 1

    return "".join(out)


def loads(text: str, path: str | None = None) -> Any:
    """
    Parse JSON-with-comments text.

    Raises:
        ConfigParseError: with 1-based line/column of the first problem
    """
    cleaned = strip_trailing_commas(strip_comments(text))
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        where = f"{path}:" if path else ""
        raise ConfigParseError(
            f"{where}{e.lineno}:{e.colno}: {e.msg}",
            path=path,
            line=e.lineno,
            column=e.colno,
        ) from e
