"""
Command dispatch: split a slash-command line, find its handler, ask for
confirmation where needed, and convert every failure into a CommandResult.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .args import NoArgs
from .commands import BUILTIN_COMMANDS, CommandContext, SlashCommand, maybe_await
from .errors import CommandError, InternalError
from .results import CommandResult, error_result, failure_result, info_result

logger = logging.getLogger(__name__)

YES_TOKENS = ('--yes', '-y')


# ============================================================================
# TOKENIZING
# ============================================================================

def tokenize(text: str) -> List[str]:
    """
    Split on whitespace, keeping double-quoted runs together.

    Inside quotes, `\\"` is a literal quote. An unterminated quote runs to
    the end of the line.

    Examples:
        tokenize('--text "Hello World" -c red') -> ['--text', 'Hello World', '-c', 'red']
        tokenize('--text ""')                   -> ['--text', '']
    """
    tokens: List[str] = []
    current: List[str] = []
    in_quotes = False
    has_token = False
    i = 0
    while i < len(text):
        ch = text[i]
        if in_quotes:
            if ch == '\\' and i + 1 < len(text) and text[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            if ch == '"':
                in_quotes = False
            else:
                current.append(ch)
        elif ch == '"':
            in_quotes = True
            has_token = True
        elif ch.isspace():
            if has_token:
                tokens.append(''.join(current))
                current = []
                has_token = False
        else:
            current.append(ch)
            has_token = True
        i += 1
    if has_token:
        tokens.append(''.join(current))
    return tokens


def parse_slash_command(text: str) -> Optional[Tuple[str, List[str]]]:
    """Return (lower-cased name, argument tokens), or None if `text` is not a command."""
    stripped = text.strip()
    if not stripped.startswith('/') or len(stripped) < 2 or stripped[1].isspace():
        return None
    tokens = tokenize(stripped[1:])
    if not tokens:
        return None
    return tokens[0].lower(), tokens[1:]


# ============================================================================
# REGISTRY
# ============================================================================

class CommandRegistry:
    """Name → SlashCommand lookup plus help and autocomplete helpers."""

    def __init__(self, commands: Iterable[SlashCommand] = ()):
        self._commands: Dict[str, SlashCommand] = {}
        for command in commands:
            self.register(command)

    @classmethod
    def default(cls) -> 'CommandRegistry':
        """Registry with every built-in command plus `/help`."""
        registry = cls(BUILTIN_COMMANDS)
        registry.register(SlashCommand(
            name='help',
            description='Show available commands',
            usage='/help',
            handler=registry._handle_help,
        ))
        return registry

    def register(self, command: SlashCommand) -> None:
        self._commands[command.name.lower()] = command

    def unregister(self, name: str) -> bool:
        return self._commands.pop(name.lower(), None) is not None

    def get(self, name: str) -> Optional[SlashCommand]:
        return self._commands.get(name.lower())

    def names(self) -> List[str]:
        return sorted(self._commands)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._commands

    def __len__(self) -> int:
        return len(self._commands)

    def help_text(self) -> str:
        lines = []
        for name in self.names():
            command = self._commands[name]
            lines.append(f"• `/{name}` - {command.description}\n  `{command.usage}`")
        return "\n".join(lines)

    def match(self, partial: str, limit: int = 10) -> List[SlashCommand]:
        """
        Rank commands for autocomplete.

        Prefix matches come first, then substring matches, then names that
        contain the query's characters in order (so "sa" finds "set-audio").
        """
        query = partial.lstrip('/').lower()
        if not query:
            return [self._commands[n] for n in self.names()][:limit]

        scored = []
        for name in self.names():
            if name.startswith(query):
                rank = 0
            elif query in name:
                rank = 1
            elif _is_subsequence(query, name):
                rank = 2
            else:
                continue
            scored.append((rank, len(name), name))
        scored.sort()
        return [self._commands[name] for _, _, name in scored[:limit]]

    async def _handle_help(self, ctx: CommandContext) -> CommandResult:
        ctx.parse(NoArgs, [], 'help')
        return info_result("Available Commands", self.help_text(), ctx.project, icon="📖")


def _is_subsequence(needle: str, haystack: str) -> bool:
    it = iter(haystack)
    return all(ch in it for ch in needle)


_default_registry: Optional[CommandRegistry] = None


def default_registry() -> CommandRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = CommandRegistry.default()
    return _default_registry


# ============================================================================
# EXECUTION
# ============================================================================

async def _confirmed(command: SlashCommand, ctx: CommandContext) -> bool:
    if not command.requires_confirmation or ctx.confirm is None:
        return True
    if any(token in YES_TOKENS for token in ctx.args):
        return True
    message = command.confirmation_message or f"Are you sure you want to run /{command.name}?"
    return bool(await maybe_await(ctx.confirm(message)))


async def execute_command(
    text: str,
    project: Any = None,
    registry: Optional[CommandRegistry] = None,
    **collaborators: Any,
) -> CommandResult:
    """
    Run one slash-command line against `project`.

    Never raises: every failure comes back as a CommandResult whose
    `project` is the input document.

    Args:
        text: raw input, e.g. '/set-audio --id a1 --volume 0.5'
        project: current document (or None)
        registry: commands to dispatch to; defaults to the built-ins
        **collaborators: file_storage, show_json_editor, confirm

    Returns:
        CommandResult. `handled` is False only when `text` is not a slash
        command at all.
    """
    parsed = parse_slash_command(text)
    if parsed is None:
        return CommandResult(success=False, message="", handled=False, project=project)

    name, args = parsed
    if registry is None:
        registry = default_registry()
    command = registry.get(name)
    if command is None:
        available = ", ".join(f"/{n}" for n in registry.names())
        return failure_result(
            "Unknown Command",
            f"Unknown command '/{name}'.\n\nAvailable commands: {available}",
            project,
        )

    ctx = CommandContext(project=project, args=args, **collaborators)
    return await run_command(command, ctx)


async def run_command(command: SlashCommand, ctx: CommandContext) -> CommandResult:
    """Invoke a resolved command inside the error boundary."""
    logger.debug("Running /%s with %d argument(s)", command.name, len(ctx.args))
    try:
        if not await _confirmed(command, ctx):
            return CommandResult(
                success=False,
                message=(
                    f"⏸️ **Command Cancelled**\n\n`/{command.name}` was cancelled. "
                    f"Add `--yes` to skip confirmation."
                ),
                project=ctx.project,
            )
        result = await command.handler(ctx)
    except CommandError as e:
        return error_result(e, ctx.project)
    except Exception:
        logger.exception("Unexpected error in /%s", command.name)
        return error_result(InternalError.for_command(command.name), ctx.project)

    if result.project is None:
        result.project = ctx.project
    return result
