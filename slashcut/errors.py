"""
Error taxonomy for the command interpreter.

Handlers raise these; the dispatcher converts every one of them into a
failure result so no exception crosses the interpreter boundary.
"""

from typing import Optional


class CommandError(Exception):
    """Base class for errors a handler reports to the user."""

    kind = "error"
    default_title = "Command Failed"

    def __init__(self, detail: str, title: Optional[str] = None):
        super().__init__(detail)
        self.title = title or self.default_title
        self.detail = detail

    @property
    def message(self) -> str:
        """Markup rendered in the chat surface."""
        return f"❌ **{self.title}**\n\n{self.detail}"


class ValidationError(CommandError, ValueError):
    """Malformed, missing, or out-of-range argument."""

    kind = "validation"
    default_title = "Invalid Argument"


class NotFoundError(CommandError, LookupError):
    """No project, no storage, or an id that does not resolve."""

    kind = "not_found"
    default_title = "Not Found"


class ConflictError(CommandError):
    """Contradictory flags, e.g. --before together with --after."""

    kind = "conflict"
    default_title = "Conflicting Options"


class InternalError(CommandError):
    """Unexpected failure; the detail shown to the user is generic."""

    kind = "internal"
    default_title = "Command Failed"

    @classmethod
    def for_command(cls, command_name: str) -> 'InternalError':
        return cls(f"Failed to run `/{command_name}`. Please try again.")


def missing_value(long_flag: str, hint: str = "") -> ValidationError:
    """The option needs a value but the argument list ended."""
    detail = f"Option `{long_flag}` requires a value."
    if hint:
        detail += f"\n\nExample: `{long_flag} {hint}`"
    return ValidationError(detail, title="Missing Value")


def unknown_option(token: str, command_name: str) -> ValidationError:
    return ValidationError(
        f"Unknown option '{token}'. Use `/help` to see the usage of `/{command_name}`.",
        title="Unknown Option",
    )


def no_project() -> NotFoundError:
    return NotFoundError(
        "No project is currently loaded. Please create or load a project first.",
        title="No Project",
    )
