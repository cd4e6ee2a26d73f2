"""Working-directory tracking from the terminal feed.

The tracker follows the shell's current directory using two signals found in
terminal output: the directory printed in each prompt, and the directory
commands typed after it (``cd``, ``pushd``, ``popd`` and their PowerShell
aliases). Prompts win whenever they show a full path; commands fill the gap
for shells whose prompt shows only the last path component.
"""

from __future__ import annotations

import logging
import ntpath
import posixpath
import re
import shlex
import threading
from collections import deque
from enum import Enum
from typing import Optional

from termsight.context.prompt_parser import PromptParser
from termsight.hooks.events import DirectoryChangedEvent, HookRegistry

log = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 50

_CD_COMMANDS = frozenset({"cd", "chdir", "set-location", "sl"})
_PUSHD_COMMANDS = frozenset({"pushd", "push-location"})
_POPD_COMMANDS = frozenset({"popd", "pop-location"})

_WINDOWS_PATH = re.compile(r"^(?:[A-Za-z]:[\\/]|\\\\)")
_SEGMENT_SPLIT = re.compile(r"\s*(?:&&|\|\||;)\s*")


class DirectoryChangeType(str, Enum):
    COMMAND = "command"  # cd typed at the prompt, or set explicitly
    PROMPT = "prompt"  # read from a prompt line
    STACK = "stack"  # pushd / popd


def _is_windows(path: str) -> bool:
    return bool(_WINDOWS_PATH.match(path))


def _is_absolute(path: str) -> bool:
    return path.startswith("/") or _is_windows(path)


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return token[1:-1]
    return token


def _tokenize(segment: str) -> list[str]:
    # posix=False keeps Windows backslashes intact
    try:
        return [_unquote(t) for t in shlex.split(segment, posix=False)]
    except ValueError:
        return segment.split()


class DirectoryTracker:
    """Thread-safe view of the shell's working directory and its history.

    Args:
        parser: Prompt parser; also supplies the home directory.
        hooks: Registry notified with a :class:`DirectoryChangedEvent` on
            every change.
        max_history: Number of previous directories kept, oldest dropped first.
        initial_directory: Starting directory. Unknown (None) by default,
            until a prompt or command reveals it.
    """

    def __init__(
        self,
        parser: Optional[PromptParser] = None,
        *,
        hooks: Optional[HookRegistry] = None,
        max_history: int = DEFAULT_MAX_HISTORY,
        initial_directory: Optional[str] = None,
    ) -> None:
        self._parser = parser or PromptParser()
        self._hooks = hooks or HookRegistry()
        self._lock = threading.Lock()
        self._current = initial_directory
        self._username: Optional[str] = None
        self._hostname: Optional[str] = None
        self._history: deque[str] = deque(maxlen=max_history)
        self._stack: list[str] = []

    # ── State ────────────────────────────────────────────────────────

    @property
    def parser(self) -> PromptParser:
        return self._parser

    @property
    def current_directory(self) -> Optional[str]:
        return self._current

    @property
    def username(self) -> Optional[str]:
        return self._username

    @property
    def hostname(self) -> Optional[str]:
        return self._hostname

    @property
    def history(self) -> list[str]:
        """Previous directories, oldest first."""
        with self._lock:
            return list(self._history)

    @property
    def history_count(self) -> int:
        return len(self._history)

    def dirs(self) -> list[str]:
        """The directory stack as ``dirs`` prints it: current first, then pushed entries."""
        with self._lock:
            current = [self._current] if self._current else []
            return current + self._stack[::-1]

    def context_line(self) -> Optional[str]:
        current = self._current
        return f"Working directory: {current}" if current else None

    def relative_to_home(self) -> Optional[str]:
        """``~``-relative form of the current directory, or None outside home."""
        current = self._current
        home = self._parser.home.rstrip("/\\")
        if not current:
            return None
        if current.rstrip("/\\") == home:
            return "~"
        for sep in ("/", "\\"):
            if current.startswith(home + sep):
                return "~" + sep + current[len(home) + 1 :]
        return None

    def formatted_directory(self, max_length: int = 40) -> str:
        """Current directory, shortened to its trailing components when long."""
        current = self._current or ""
        if len(current) <= max_length:
            return current
        sep = "\\" if _is_windows(current) else "/"
        parts = [p for p in current.split(sep) if p]
        kept: list[str] = []
        for part in reversed(parts):
            if len(part) + sum(len(p) + 1 for p in kept) + 4 > max_length and kept:
                break
            kept.insert(0, part)
        return "..." + sep + sep.join(kept)

    # ── Feed ─────────────────────────────────────────────────────────

    def observe(self, line: str) -> bool:
        """Update from one line of terminal output. Returns whether the directory changed."""
        parsed = self._parser.parse(line)
        if parsed is None:
            return False

        events = []
        with self._lock:
            self._username = parsed.username or self._username
            self._hostname = parsed.hostname or self._hostname
            directory = parsed.expanded_directory(self._parser.home)
            # Bare names (RHEL/zsh short prompts) are not enough to locate the directory
            if _is_absolute(directory):
                events.append(self._set_locked(directory, DirectoryChangeType.PROMPT))
            if parsed.command:
                events.extend(self._apply_locked(parsed.command))
        return self._emit(events)

    def apply_command(self, command: str) -> bool:
        """Apply the directory commands in *command*. Returns whether the directory changed."""
        with self._lock:
            events = self._apply_locked(command)
        return self._emit(events)

    # ── Explicit changes ─────────────────────────────────────────────

    def set_directory(self, directory: str, change_type: DirectoryChangeType = DirectoryChangeType.COMMAND) -> bool:
        if not directory or not directory.strip():
            log.warning("Cannot set working directory to an empty path")
            return False
        with self._lock:
            event = self._set_locked(directory.strip(), change_type)
        return self._emit([event])

    def pushd(self, target: Optional[str] = None) -> bool:
        """Push the current directory and change to *target*.

        Without a target the current directory swaps with the top of the stack.
        """
        with self._lock:
            events = self._pushd_locked(target)
        return self._emit(events)

    def popd(self) -> Optional[str]:
        """Pop the top of the stack and change to it. None when the stack is empty."""
        with self._lock:
            popped, event = self._popd_locked()
        self._emit([event])
        return popped

    def reset_to_home(self) -> bool:
        return self.set_directory(self._parser.home)

    def clear_history(self) -> None:
        """Forget previous directories and the pushd stack. The current directory stays."""
        with self._lock:
            removed = len(self._history) + len(self._stack)
            self._history.clear()
            self._stack.clear()
        log.info("Cleared directory history (%d entries)", removed)

    # ── Internals (caller holds the lock) ────────────────────────────

    def _resolve_locked(self, target: str) -> Optional[str]:
        home = self._parser.home
        if target in ("", "~"):
            return home
        if target == "-":
            return self._history[-1] if self._history else None
        if target.startswith("~/") or target.startswith("~\\"):
            target = home.rstrip("/\\") + target[1:]
        if _is_absolute(target):
            return ntpath.normpath(target) if _is_windows(target) else posixpath.normpath(target)
        if self._current is None:
            log.debug("Cannot resolve relative path %r without a known directory", target)
            return None
        if _is_windows(self._current):
            return ntpath.normpath(ntpath.join(self._current, target))
        return posixpath.normpath(posixpath.join(self._current, target))

    def _set_locked(self, directory: str, change_type: DirectoryChangeType) -> Optional[DirectoryChangedEvent]:
        old = self._current
        if directory == old:
            return None
        if old is not None:
            self._history.append(old)
        self._current = directory
        log.info("Working directory changed: %s -> %s (%s)", old or "<unknown>", directory, change_type.value)
        return DirectoryChangedEvent(
            old_directory=old,
            new_directory=directory,
            change_type=change_type,
            username=self._username,
            hostname=self._hostname,
        )

    def _pushd_locked(self, target: Optional[str]) -> list[Optional[DirectoryChangedEvent]]:
        if target is None:
            if not self._stack or self._current is None:
                log.warning("pushd: no other directory")
                return []
            top = self._stack.pop()
            self._stack.append(self._current)
            return [self._set_locked(top, DirectoryChangeType.STACK)]

        resolved = self._resolve_locked(target)
        if resolved is None:
            return []
        if self._current is not None:
            self._stack.append(self._current)
        return [self._set_locked(resolved, DirectoryChangeType.STACK)]

    def _popd_locked(self) -> tuple[Optional[str], Optional[DirectoryChangedEvent]]:
        if not self._stack:
            log.warning("popd: directory stack empty")
            return None, None
        popped = self._stack.pop()
        return popped, self._set_locked(popped, DirectoryChangeType.STACK)

    def _apply_locked(self, command: str) -> list[Optional[DirectoryChangedEvent]]:
        events: list[Optional[DirectoryChangedEvent]] = []
        for segment in _SEGMENT_SPLIT.split(command.strip()):
            # A piped cd runs in a subshell
            if not segment or "|" in segment:
                continue
            tokens = _tokenize(segment)
            if not tokens:
                continue
            name = tokens[0].lower()
            args = [t for t in tokens[1:] if t == "-" or not t.startswith("-")]
            if name in _CD_COMMANDS:
                if not args and self._current is not None and _is_windows(self._current):
                    continue  # cmd.exe prints the directory
                args = [a for a in args if a.lower() != "/d"]
                resolved = self._resolve_locked(args[0] if args else "")
                if resolved is not None:
                    events.append(self._set_locked(resolved, DirectoryChangeType.COMMAND))
            elif name in _PUSHD_COMMANDS:
                events.extend(self._pushd_locked(args[0] if args else None))
            elif name in _POPD_COMMANDS:
                events.append(self._popd_locked()[1])
        return events

    def _emit(self, events: list[Optional[DirectoryChangedEvent]]) -> bool:
        changed = False
        for event in events:
            if event is not None:
                changed = True
                self._hooks.emit(event)
        return changed
