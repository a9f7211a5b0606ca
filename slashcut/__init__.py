"""
slashcut - slash-command interpreter for video-composition projects.

This package provides tools to:
- Parse commands like `/new-audio --src song.mp3 -v 0.8`
- Validate arguments, including human durations (`1.5s`, `30f`, `2m`)
- Apply them to a Project document without mutating it in place
- Load and save projects as editor JSON
"""

from .commands import BUILTIN_COMMANDS, CommandContext, SlashCommand
from .dispatcher import CommandRegistry, execute_command, parse_slash_command, tokenize
from .document import load_project, project_from_dict, project_to_dict, save_project
from .errors import (
    CommandError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from .models import (
    AppState,
    Audio,
    Composition,
    Element,
    ElementType,
    Note,
    Page,
    Project,
    TextAlign,
    new_project,
)
from .results import CommandResult
from .timing import format_frames_to_duration, parse_duration

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",

    # Enums
    "ElementType",
    "TextAlign",

    # Models
    "AppState",
    "Audio",
    "Composition",
    "Element",
    "Note",
    "Page",
    "Project",
    "new_project",

    # Time
    "parse_duration",
    "format_frames_to_duration",

    # Documents
    "load_project",
    "save_project",
    "project_from_dict",
    "project_to_dict",

    # Commands
    "BUILTIN_COMMANDS",
    "CommandContext",
    "CommandRegistry",
    "CommandResult",
    "SlashCommand",
    "execute_command",
    "parse_slash_command",
    "tokenize",

    # Errors
    "CommandError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InternalError",
]
