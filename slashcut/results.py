"""
Structured command outcomes and the markup helpers used to build them.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import CommandError
from .models import Project


@dataclass
class CommandResult:
    """
    Outcome of one command invocation.

    `handled` means "this was a recognized command", independent of
    `success`. `project` is the document after the command: the very
    object passed in when nothing changed.
    """
    success: bool
    message: str
    handled: bool = True
    project: Optional[Project] = None
    entity_id: Optional[str] = None
    changes: List[str] = field(default_factory=list)
    error_kind: Optional[str] = None
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Machine-readable fields (the document itself is not included)."""
        out: Dict[str, Any] = {
            'success': self.success,
            'message': self.message,
            'handled': self.handled,
        }
        if self.entity_id is not None:
            out['id'] = self.entity_id
        if self.changes:
            out['changes'] = list(self.changes)
        if self.error_kind is not None:
            out['error'] = self.error_kind
        if self.data is not None:
            out['data'] = self.data
        return out


def success_result(title: str, body: str, project: Optional[Project] = None,
                   **fields: Any) -> CommandResult:
    return CommandResult(
        success=True,
        message=f"✅ **{title}**\n\n{body}",
        project=project,
        **fields,
    )


def info_result(title: str, body: str, project: Optional[Project] = None,
                icon: str = "📝", **fields: Any) -> CommandResult:
    """Successful read-only output with a non-checkmark icon."""
    return CommandResult(
        success=True,
        message=f"{icon} **{title}**\n\n{body}",
        project=project,
        **fields,
    )


def failure_result(title: str, detail: str, project: Optional[Project] = None,
                   handled: bool = True) -> CommandResult:
    return CommandResult(
        success=False,
        message=f"❌ **{title}**\n\n{detail}",
        handled=handled,
        project=project,
    )


def error_result(error: CommandError, project: Optional[Project] = None) -> CommandResult:
    """Convert a raised CommandError into a failure result."""
    return CommandResult(
        success=False,
        message=error.message,
        project=project,
        error_kind=error.kind,
    )


def json_block(payload: Any) -> str:
    """Render a fenced JSON code block for the chat surface."""
    return f"```json\n{json.dumps(payload, indent=2, ensure_ascii=False)}\n```"


def bullet_list(lines: List[str]) -> str:
    return "\n".join(f"• {line}" for line in lines)


def plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"
