"""
Route template compilation.

A template is a `/`-separated path whose segments are one of:

    posts            literal, matched exactly (regex metacharacters escaped)
    {slug}           placeholder, one or more non-`/` characters
    {id:\\d+}         placeholder with an inline sub-pattern, used verbatim

    compile_template("/api/posts/{id:\\d+}/publish")
        → regex  ^/api/posts/(\\d+)/publish$
        → names  ["id"]

Empty segments are dropped, so trailing slashes in the template (or in the
request path) make no difference, and the root template compiles to a
pattern that matches only the empty path.

Sub-patterns are trusted input: they come from the application's own route
table at startup, never from a request. A sub-pattern that is not a valid
regular expression, or that adds capturing groups of its own, raises
RouteConfigurationError while the table is being built.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from blogapi.exceptions import RouteConfigurationError

_TYPED_PARAM = re.compile(r"^\{([a-zA-Z_][a-zA-Z0-9_]*):(.+)\}$")
_BARE_PARAM = re.compile(r"^\{([a-zA-Z_][a-zA-Z0-9_]*)\}$")


@dataclass(frozen=True)
class CompiledPattern:
    template: str
    regex: "re.Pattern[str]"
    param_names: Tuple[str, ...]

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """Parameter mapping for `path`, or None when it does not match."""
        m = self.regex.fullmatch(normalize_path(path))
        if m is None:
            return None
        return dict(zip(self.param_names, m.groups()))


def split_segments(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment != ""]


def normalize_path(path: str) -> str:
    """`/a//b/` → `/a/b`; the root (or an empty path) → ``."""
    segments = split_segments(path)
    return "/" + "/".join(segments) if segments else ""


def compile_template(template: str) -> CompiledPattern:
    segments = split_segments(template)
    names: List[str] = []
    pieces: List[str] = []

    for segment in segments:
        typed = _TYPED_PARAM.match(segment)
        if typed:
            names.append(typed.group(1))
            pieces.append("(" + typed.group(2) + ")")
            continue
        bare = _BARE_PARAM.match(segment)
        if bare:
            names.append(bare.group(1))
            pieces.append("([^/]+)")
            continue
        pieces.append(re.escape(segment))

    source = "^/" + "/".join(pieces) + "$" if pieces else "^$"
    try:
        regex = re.compile(source)
    except re.error as exc:
        raise RouteConfigurationError(
            f"Invalid sub-pattern in route template '{template}': {exc}"
        ) from exc

    if regex.groups != len(names):
        raise RouteConfigurationError(
            f"Route template '{template}' declares {len(names)} parameter(s) but its "
            f"pattern has {regex.groups} capturing group(s); use (?:...) inside sub-patterns"
        )
    _check_unique(template, names)

    return CompiledPattern(template=template, regex=regex, param_names=tuple(names))


def _check_unique(template: str, names: Sequence[str]) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise RouteConfigurationError(
                f"Route template '{template}' repeats parameter '{name}'"
            )
        seen.add(name)
