"""Environment variable expansion for project files.

Project YAML may reference the environment as ${NAME}, $NAME or
${NAME:-default}. A project directory can carry its own .env file, loaded
with python-dotenv before expansion; variables already exported in the
shell win over it.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from dotenv import load_dotenv

__all__ = ["expand_env_vars", "find_unresolved", "load_env_file", "resolve_env_vars"]

ENV_VAR_PATTERN = re.compile(
    r"\$\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}"
    r"|\$(?P<bare>[A-Za-z_][A-Za-z0-9_]*)"
)


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Load variables from a .env file (searched upwards from cwd when path is None).

    Returns:
        True if a file was found and loaded
    """
    if path is not None and not Path(path).is_file():
        return False
    return load_dotenv(dotenv_path=path, override=override)


def expand_env_vars(value: str, *, strict: bool = False) -> str:
    """Expand environment references in one string.

    Unset variables without a default are left as written, or raise
    KeyError when strict is True.

    Example:
        >>> os.environ["WAREHOUSE"] = "/data/wh"
        >>> expand_env_vars("${WAREHOUSE}/historical")
        '/data/wh/historical'
        >>> expand_env_vars("${EXTRACTS:-./sample_data}/a.csv")
        './sample_data/a.csv'
    """

    def replacer(match: re.Match[str]) -> str:
        name = match.group("braced") or match.group("bare")
        env_value = os.environ.get(name)
        if env_value is not None:
            return env_value
        if match.group("default") is not None:
            return match.group("default")
        if strict:
            raise KeyError(f"Environment variable not set: {name}")
        return match.group(0)

    return ENV_VAR_PATTERN.sub(replacer, value)


def resolve_env_vars(value: Any, *, strict: bool = False) -> Any:
    """Expand references in every string of a parsed YAML document.

    Dates, numbers and booleans parsed by YAML pass through untouched.
    """
    if isinstance(value, str):
        return expand_env_vars(value, strict=strict)
    if isinstance(value, dict):
        return {k: resolve_env_vars(v, strict=strict) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_env_vars(item, strict=strict) for item in value]
    return value


def find_unresolved(value: Any, location: str = "") -> List[Tuple[str, str]]:
    """List (config key, variable) pairs still unexpanded after resolve_env_vars.

    Example:
        >>> find_unresolved({"snapshots": [{"source_path": "${NOPE}/a.csv"}]})
        [('snapshots.0.source_path', 'NOPE')]
    """
    if isinstance(value, str):
        return [
            (location or "(root)", m.group("braced") or m.group("bare"))
            for m in ENV_VAR_PATTERN.finditer(value)
        ]
    if isinstance(value, dict):
        items = [(str(k), v) for k, v in value.items()]
    elif isinstance(value, list):
        items = [(str(i), v) for i, v in enumerate(value)]
    else:
        return []
    found: List[Tuple[str, str]] = []
    for key, child in items:
        found.extend(find_unresolved(child, f"{location}.{key}" if location else key))
    return found
