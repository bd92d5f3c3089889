import enum
import json
import sys
from dataclasses import dataclass

from .. import LIBRARY_NAME

FORMATS = ("cargo", "json")


class LinkKind(enum.Enum):
    STATIC = "static"
    DYNAMIC = "dylib"


@dataclass(frozen=True)
class LinkDirective:
    search_paths: tuple
    link_kind: LinkKind
    library_name: str = LIBRARY_NAME


def link_kind(features):
    return LinkKind.STATIC if features.static else LinkKind.DYNAMIC


def render(directive, fmt="cargo"):
    """Return the lines announcing `directive` to the consuming build."""
    if fmt == "json":
        return [json.dumps({
            "search_paths": [str(path) for path in directive.search_paths],
            "link_kind": directive.link_kind.name.lower(),
            "library": directive.library_name,
        })]
    if fmt != "cargo":
        raise ValueError(f"Unknown directive format: {fmt}")
    lines = [f"cargo:rustc-link-search={path}" for path in directive.search_paths]
    lines.append(f"cargo:rustc-link-lib={directive.link_kind.value}={directive.library_name}")
    return lines


def emit(directive, fmt="cargo", stream=None):
    stream = stream or sys.stdout
    for line in render(directive, fmt):
        print(line, file=stream)
    stream.flush()
