#!/usr/bin/env python3
"""
slashcut MCP Server - run slash commands against video-composition projects.

Each tool call loads a project JSON file, runs one command through the
interpreter, and writes the file back only when the document changed.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import os
import sys
from pathlib import Path
from typing import Any, Sequence

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool

from slashcut import __version__
from slashcut.dispatcher import default_registry, execute_command
from slashcut.document import load_project, save_project
from slashcut.models import FPS_RANGE, MAX_HEIGHT, MAX_WIDTH, Project, new_project
from slashcut.timing import format_frames_to_duration

server = Server("slashcut-mcp-server")
PROJECTS_DIR = os.environ.get("SLASHCUT_PROJECTS_DIR", os.path.expanduser("~/Movies"))
FILES_DIR = os.environ.get("SLASHCUT_FILES_DIR", os.path.join(PROJECTS_DIR, "files"))
LOG_LEVEL = os.environ.get("SLASHCUT_LOG_LEVEL", "INFO").upper()

# Maximum project file size (50 MB).
MAX_FILE_SIZE = 50 * 1024 * 1024

PROJECT_EXTENSIONS = ('.json',)

# stdout carries the MCP stdio transport
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    stream=sys.stderr,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("slashcut.server")


# ============================================================================
# SECURITY UTILITIES
# ============================================================================

def _validate_filepath(filepath: str, allowed_extensions: tuple[str, ...] | None = None) -> str:
    """Validate a user-provided file path against traversal and size attacks.

    Raises:
        ValueError: For invalid paths (null bytes, bad extensions, oversized).
        FileNotFoundError: When the resolved path does not exist.
    """
    if '\x00' in filepath:
        raise ValueError("Invalid file path: null byte detected")

    resolved = Path(filepath).resolve()

    if not resolved.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    if not resolved.is_file():
        raise ValueError(f"Not a regular file: {filepath}")

    if allowed_extensions and resolved.suffix.lower() not in allowed_extensions:
        raise ValueError(
            f"Invalid file type '{resolved.suffix}'. "
            f"Allowed: {', '.join(allowed_extensions)}"
        )

    if resolved.stat().st_size > MAX_FILE_SIZE:
        size_mb = resolved.stat().st_size / (1024 * 1024)
        raise ValueError(f"File too large ({size_mb:.1f} MB). Maximum: {MAX_FILE_SIZE // (1024 * 1024)} MB")

    return str(resolved)


def _validate_output_path(output_path: str) -> str:
    """Validate an output path: block null bytes, require .json, ensure parent exists."""
    if '\x00' in output_path:
        raise ValueError("Invalid output path: null byte detected")

    resolved = Path(output_path).resolve()

    if resolved.suffix.lower() not in PROJECT_EXTENSIONS:
        raise ValueError(f"Output must be a .json file, got '{resolved.suffix}'")

    if not resolved.parent.exists():
        raise ValueError(f"Output directory does not exist: {resolved.parent}")

    return str(resolved)


def _validate_directory(directory: str) -> str:
    if '\x00' in directory:
        raise ValueError("Invalid directory path: null byte detected")

    resolved = Path(directory).resolve()

    if not resolved.is_dir():
        raise ValueError(f"Not a valid directory: {directory}")

    return str(resolved)


# ============================================================================
# COLLABORATORS
# ============================================================================

class ProjectFile:
    """Project accessor backed by a JSON file on disk."""

    def __init__(self, filepath: str):
        self.path = _validate_filepath(filepath, PROJECT_EXTENSIONS)

    def load(self) -> Project:
        return load_project(self.path)

    def save(self, project: Project) -> str:
        return save_project(project, self.path)


class DirectoryFileStorage:
    """File-metadata store listing the media files in one directory."""

    def __init__(self, directory: str = FILES_DIR):
        self.directory = Path(directory)

    async def get_all_files(self) -> list[dict[str, Any]]:
        if not self.directory.is_dir():
            return []
        files = []
        for entry in sorted(self.directory.iterdir()):
            if not entry.is_file() or entry.name.startswith('.'):
                continue
            stat = entry.stat()
            files.append({
                "id": entry.stem,
                "name": entry.name,
                "type": mimetypes.guess_type(entry.name)[0] or "application/octet-stream",
                "size": stat.st_size,
                "lastModified": int(stat.st_mtime * 1000),
            })
        return files


def find_project_files(directory: str) -> list[str]:
    """Find all project JSON files in a directory tree."""
    path = Path(directory)
    return sorted(str(f) for f in path.rglob("*.json"))


def _summarize(project: Project) -> str:
    comp = project.composition
    if comp is None:
        return f"Project: {project.name} (no composition)"
    return (
        f"Project: {project.name}\n"
        f"Duration: {format_frames_to_duration(comp.total_frames, comp.fps)}\n"
        f"Resolution: {comp.width}x{comp.height} @ {comp.fps}fps\n"
        f"Pages: {len(comp.pages)}\n"
        f"Audio tracks: {len(comp.audios)}\n"
        f"Notes: {len(project.notes)}"
    )


# ============================================================================
# MCP RESOURCES - File discovery
# ============================================================================

@server.list_resources()
async def list_resources() -> list[Resource]:
    """Expose discovered project files as MCP resources."""
    resources = []
    for f in find_project_files(PROJECTS_DIR):
        p = Path(f)
        resources.append(Resource(
            uri=f"file://{f}",
            name=p.stem,
            description=f"Video project: {p.name}",
            mimeType="application/json",
        ))
    return resources


@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read a project file and return a summary."""
    filepath = str(uri).replace("file://", "")
    try:
        project = ProjectFile(filepath).load()
    except (ValueError, FileNotFoundError) as e:
        return str(e)
    return f"{_summarize(project)}\nPath: {filepath}"


# ============================================================================
# MCP TOOLS
# ============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="list_projects",
            description="List all project JSON files in a directory",
            inputSchema={
                "type": "object",
                "properties": {
                    "directory": {"type": "string", "description": "Directory to search (default: ~/Movies)"}
                }
            }
        ),
        Tool(
            name="run_command",
            description=(
                "Run one slash command (e.g. '/set-audio --id a1 --volume 0.5') against a project file. "
                "The file is saved only if the command changed the document. Use list_commands for syntax."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "project_path": {"type": "string", "description": "Path to the project .json file"},
                    "command": {"type": "string", "description": "Slash command line"},
                    "confirm": {
                        "type": "boolean",
                        "description": "Approve destructive commands (same as passing --yes)",
                        "default": False,
                    },
                },
                "required": ["project_path", "command"]
            }
        ),
        Tool(
            name="list_commands",
            description="List available slash commands with usage, optionally filtered by a partial name",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Partial command name, e.g. 'set' or 'sa'"}
                }
            }
        ),
        Tool(
            name="new_project",
            description="Create a new project file with one blank page",
            inputSchema={
                "type": "object",
                "properties": {
                    "output_path": {"type": "string", "description": "Where to write the project .json"},
                    "name": {"type": "string", "default": "Untitled Project"},
                    "fps": {"type": "integer", "default": 30, "minimum": FPS_RANGE[0], "maximum": FPS_RANGE[1]},
                    "width": {"type": "integer", "default": 1920, "minimum": 1, "maximum": MAX_WIDTH},
                    "height": {"type": "integer", "default": 1080, "minimum": 1, "maximum": MAX_HEIGHT},
                },
                "required": ["output_path"]
            }
        ),
    ]


# ============================================================================
# TOOL HANDLERS
# ============================================================================

async def handle_list_projects(arguments: dict) -> Sequence[TextContent]:
    directory = arguments.get("directory", PROJECTS_DIR)
    resolved_dir = _validate_directory(directory)
    files = find_project_files(resolved_dir)
    if not files:
        return [TextContent(type="text", text=f"No project files found in {directory}")]
    return [TextContent(type="text", text=f"Found {len(files)} project file(s):\n" + "\n".join(f"  - {f}" for f in files))]


async def handle_run_command(arguments: dict) -> Sequence[TextContent]:
    project_file = ProjectFile(arguments["project_path"])
    project = project_file.load()
    approved = bool(arguments.get("confirm", False))

    def confirm(message: str) -> bool:
        return approved

    result = await execute_command(
        arguments["command"],
        project,
        file_storage=DirectoryFileStorage(FILES_DIR),
        confirm=confirm,
    )
    if not result.handled:
        return [TextContent(type="text", text="Not a slash command. Commands start with '/', e.g. /help")]

    text = result.message
    if result.success and result.project is not project:
        saved = project_file.save(result.project)
        logger.info("Saved %s after %s", saved, arguments["command"].split()[0])
        text += f"\n\nSaved to: {saved}"
    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    return [TextContent(type="text", text=text), TextContent(type="text", text=payload)]


async def handle_list_commands(arguments: dict) -> Sequence[TextContent]:
    registry = default_registry()
    query = arguments.get("query")
    if not query:
        return [TextContent(type="text", text=f"# Commands\n\n{registry.help_text()}")]
    matches = registry.match(query)
    if not matches:
        return [TextContent(type="text", text=f"No commands match '{query}'")]
    lines = [f"• `/{c.name}` - {c.description}\n  `{c.usage}`" for c in matches]
    return [TextContent(type="text", text=f"# Commands matching '{query}'\n\n" + "\n".join(lines))]


async def handle_new_project(arguments: dict) -> Sequence[TextContent]:
    output_path = _validate_output_path(arguments["output_path"])
    fps = int(arguments.get("fps", 30))
    width = int(arguments.get("width", 1920))
    height = int(arguments.get("height", 1080))
    if not FPS_RANGE[0] <= fps <= FPS_RANGE[1]:
        raise ValueError(f"fps must be between {FPS_RANGE[0]} and {FPS_RANGE[1]}, got {fps}")
    if not 1 <= width <= MAX_WIDTH or not 1 <= height <= MAX_HEIGHT:
        raise ValueError(f"Resolution must be within {MAX_WIDTH}x{MAX_HEIGHT}, got {width}x{height}")

    project = new_project(arguments.get("name") or "Untitled Project", fps, width, height)
    saved = save_project(project, output_path)
    return [TextContent(type="text", text=f"Created project '{project.name}'\n\n{_summarize(project)}\n\nSaved to: {saved}")]


# ============================================================================
# TOOL DISPATCH
# ============================================================================

TOOL_HANDLERS = {
    "list_projects": handle_list_projects,
    "run_command": handle_run_command,
    "list_commands": handle_list_commands,
    "new_project": handle_new_project,
}


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> Sequence[TextContent]:
    handler = TOOL_HANDLERS.get(name)
    if not handler:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    try:
        return await handler(arguments)
    except FileNotFoundError as e:
        return [TextContent(type="text", text=f"File not found: {e}")]
    except ValueError as e:
        return [TextContent(type="text", text=f"Validation error: {e}")]
    except Exception as e:
        logger.exception("Tool %s failed", name)
        return [TextContent(type="text", text=f"Error: {type(e).__name__}")]


# ============================================================================
# MAIN
# ============================================================================

async def main():
    logger.info("Starting slashcut MCP server %s", __version__)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main_sync():
    """Synchronous entry point for use as a console script."""
    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()
