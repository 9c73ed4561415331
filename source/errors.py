# errors.py
from __future__ import annotations


class SwitcherError(RuntimeError):
    pass


class CommandFailed(SwitcherError):
    """A single audio server command failed."""


class StaleReference(CommandFailed):
    """The stream, sink or card a command referred to no longer exists."""


class ServerUnavailable(CommandFailed):
    """The audio server (or its event feed) cannot be reached yet."""


class FeedTerminated(SwitcherError):
    """The event feed went away after it had been established."""


class ConfigError(SwitcherError):
    pass
