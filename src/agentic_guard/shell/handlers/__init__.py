"""Command-specific handlers and their registry.

Provides:
- CommandHandler: Interface implemented by every handler
- HandlerContext: Helpers passed to handlers
- HandlerRegistry: Closed mapping from command name to handler
- get_default_registry: Registry holding the find, sed and git handlers
"""

from agentic_guard.shell.handlers.base import CommandHandler, HandlerContext
from agentic_guard.shell.handlers.find import FindHandler
from agentic_guard.shell.handlers.git import GitHandler
from agentic_guard.shell.handlers.sed import SedHandler


class HandlerRegistry:
    """Registry mapping command names to handlers.

    Names are matched on the lower-cased basename, so ``/usr/bin/find``
    resolves to the ``find`` handler.

    Example:
        registry = HandlerRegistry([FindHandler(), SedHandler()])
        handler = registry.get("find")
    """

    def __init__(self, handlers: list[CommandHandler] | None = None):
        self._handlers: dict[str, CommandHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: CommandHandler) -> None:
        """Add a handler.

        Raises:
            ValueError: If the handler has no name or the name is taken.
        """
        key = handler.name.lower()
        if not key:
            raise ValueError(f"Handler {handler!r} has no command name")
        if key in self._handlers:
            raise ValueError(f"A handler for '{key}' is already registered")
        self._handlers[key] = handler

    def get(self, name: str) -> CommandHandler | None:
        """Look up the handler for a command name or path."""
        return self._handlers.get(name.rsplit("/", 1)[-1].lower())

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None


def get_default_registry() -> HandlerRegistry:
    """Create a registry with the built-in handlers."""
    return HandlerRegistry([FindHandler(), SedHandler(), GitHandler()])


__all__ = [
    "CommandHandler",
    "HandlerContext",
    "HandlerRegistry",
    "FindHandler",
    "SedHandler",
    "GitHandler",
    "get_default_registry",
]
