"""Static filename -> syntax-highlighting language lookup.

Mirrors the table the renderer uses when a file carries no explicit ``lang``.
"""

from __future__ import annotations

import os
from typing import Final, Optional

EXTENSION_LANGUAGES: Final[dict[str, str]] = {
    # Swift & Apple
    "swift": "swift",
    "m": "objective-c",
    "mm": "objective-c",
    "h": "c",
    # JavaScript ecosystem
    "js": "javascript",
    "jsx": "jsx",
    "ts": "typescript",
    "tsx": "tsx",
    "mjs": "javascript",
    "cjs": "javascript",
    # Python
    "py": "python",
    "pyw": "python",
    "pyi": "python",
    # Go, Rust
    "go": "go",
    "rs": "rust",
    # Java & JVM
    "java": "java",
    "kt": "kotlin",
    "kts": "kotlin",
    "scala": "scala",
    # C family
    "c": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "hxx": "cpp",
    # Ruby, PHP
    "rb": "ruby",
    "erb": "erb",
    "php": "php",
    # Shell
    "sh": "bash",
    "bash": "bash",
    "zsh": "bash",
    "fish": "fish",
    # Data formats
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
    "xml": "xml",
    "plist": "xml",
    # Web
    "html": "html",
    "htm": "html",
    "css": "css",
    "scss": "scss",
    "sass": "sass",
    "less": "less",
    # Database
    "sql": "sql",
    # Docs
    "md": "markdown",
    "mdx": "mdx",
    "rst": "rst",
    # Config
    "dockerfile": "dockerfile",
    "graphql": "graphql",
    "gql": "graphql",
    # Other
    "zig": "zig",
    "lua": "lua",
    "r": "r",
    "ps1": "powershell",
    "psm1": "powershell",
}

SPECIAL_FILENAMES: Final[dict[str, str]] = {
    "dockerfile": "dockerfile",
    "makefile": "makefile",
}


def detect_language(file_name: Optional[str]) -> Optional[str]:
    """Return the language id for ``file_name``, or None if unknown."""
    if not file_name:
        return None

    base = os.path.basename(file_name).lower()
    if base in SPECIAL_FILENAMES:
        return SPECIAL_FILENAMES[base]
    if base.endswith(".d.ts"):
        return "typescript"

    _, ext = os.path.splitext(base)
    return EXTENSION_LANGUAGES.get(ext.lstrip("."))
