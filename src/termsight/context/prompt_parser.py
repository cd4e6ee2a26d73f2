"""Shell prompt detection in captured terminal output.

Recognizes the default prompts of the common shells and pulls out the user,
host, current directory and whatever command follows the prompt::

    alice@devbox:~/src/app$ make test        bash / sh
    [alice@devbox app]$ ls                   bash (RHEL default)
    alice@devbox app % git status            zsh
    alice@devbox ~/src/app> ls               fish
    PS C:\\Users\\alice> Get-ChildItem        PowerShell
    C:\\Users\\alice>dir                      cmd.exe

Extra prompt styles can be registered as regular expressions with a
``directory`` named group and optional ``user``, ``host`` and ``command``
groups.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from enum import Enum
from typing import Optional, Pattern, Union

log = logging.getLogger(__name__)


class PromptType(str, Enum):
    BASH = "bash"
    ZSH = "zsh"
    FISH = "fish"
    POWERSHELL = "powershell"
    CMD = "cmd"
    CUSTOM = "custom"


@dataclasses.dataclass(frozen=True)
class ParsedPrompt:
    """A prompt found at the start of a terminal line."""

    text: str
    prompt_type: PromptType
    directory: str
    username: Optional[str] = None
    hostname: Optional[str] = None
    command: str = ""

    def expanded_directory(self, home: str) -> str:
        """Directory with a leading ``~`` replaced by *home*."""
        directory = self.directory
        if directory == "~":
            return home
        if directory.startswith("~/"):
            return home.rstrip("/") + directory[1:]
        return directory


# Optional "(venv) " or "(base) " marker printed before the prompt
_ENV = r"(?:\([^)]*\)\s+)?"
_USER_HOST = r"(?P<user>[\w.-]+)@(?P<host>[\w.-]+)"

_BUILTIN: tuple[tuple[PromptType, Pattern[str]], ...] = (
    (PromptType.BASH, re.compile(rf"^{_ENV}{_USER_HOST}:(?P<directory>[^\s$#]+)[$#](?:\s(?P<command>.*))?$")),
    (PromptType.BASH, re.compile(rf"^{_ENV}\[{_USER_HOST}\s+(?P<directory>[^\]]+)\][$#](?:\s(?P<command>.*))?$")),
    (PromptType.ZSH, re.compile(rf"^{_ENV}{_USER_HOST}\s+(?P<directory>\S+)\s+%(?:\s(?P<command>.*))?$")),
    (PromptType.FISH, re.compile(rf"^{_ENV}{_USER_HOST}\s+(?P<directory>[~/][^>]*?)>(?:\s(?P<command>.*))?$")),
    (PromptType.POWERSHELL, re.compile(r"^PS\s+(?P<directory>[^>]+)>(?:\s(?P<command>.*))?$")),
    (PromptType.CMD, re.compile(r"^(?P<directory>[A-Za-z]:\\[^>]*)>(?P<command>.*)$")),
)


class PromptParser:
    """Matches terminal lines against built-in and registered prompt patterns.

    Args:
        home: Home directory used to expand ``~``. Defaults to the current
            user's home.
    """

    def __init__(self, home: Optional[str] = None) -> None:
        self._home = home or os.path.expanduser("~")
        self._custom: list[Pattern[str]] = []

    @property
    def home(self) -> str:
        return self._home

    @home.setter
    def home(self, value: str) -> None:
        self._home = value
        log.info("Home directory set to %s", value)

    def add_pattern(self, pattern: Union[str, Pattern[str]]) -> None:
        """Register a custom prompt pattern. Custom patterns are tried last.

        Raises:
            ValueError: The pattern has no ``directory`` group.
        """
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        if "directory" not in compiled.groupindex:
            raise ValueError("Prompt pattern needs a 'directory' named group")
        self._custom.append(compiled)
        log.info("Added custom prompt pattern %s", compiled.pattern)

    def clear_patterns(self) -> None:
        self._custom.clear()

    def supported_types(self) -> list[PromptType]:
        return [PromptType.BASH, PromptType.ZSH, PromptType.FISH, PromptType.POWERSHELL, PromptType.CMD]

    def parse(self, line: str) -> Optional[ParsedPrompt]:
        """Return the prompt at the start of *line*, or None if there is none."""
        text = line.rstrip("\r\n")
        if not text.strip():
            return None
        candidates = [*_BUILTIN, *((PromptType.CUSTOM, p) for p in self._custom)]
        for prompt_type, pattern in candidates:
            match = pattern.match(text)
            if match is None:
                continue
            directory = (match.group("directory") or "").strip()
            if not directory:
                continue
            groups = match.groupdict()
            return ParsedPrompt(
                text=text,
                prompt_type=prompt_type,
                directory=directory,
                username=groups.get("user"),
                hostname=groups.get("host"),
                command=(groups.get("command") or "").strip(),
            )
        return None

    def detect_type(self, line: str) -> Optional[PromptType]:
        parsed = self.parse(line)
        return parsed.prompt_type if parsed else None
