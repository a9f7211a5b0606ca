"""Tests for server.py - tool handlers, path validation, and dispatch."""

import json
import logging
from pathlib import Path

import pytest

import server
from slashcut.document import load_project, save_project


@pytest.fixture
def project_path(project, tmp_path):
    path = tmp_path / "launch.json"
    save_project(project, str(path))
    return str(path)


@pytest.fixture
def media_dir(tmp_path, monkeypatch):
    directory = tmp_path / "files"
    directory.mkdir()
    (directory / "logo.png").write_bytes(b"\x89PNG0000")
    (directory / "theme.mp3").write_bytes(b"ID3")
    (directory / ".DS_Store").write_bytes(b"")
    monkeypatch.setattr(server, "FILES_DIR", str(directory))
    return directory


def text_of(contents):
    return contents[0].text


# ============================================================
# Path validation
# ============================================================


class TestValidateFilepath:
    def test_valid_file(self, project_path):
        assert server._validate_filepath(project_path, (".json",)) == str(Path(project_path).resolve())

    def test_null_byte(self):
        with pytest.raises(ValueError, match="null byte"):
            server._validate_filepath("a\x00.json")

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            server._validate_filepath(str(tmp_path / "nope.json"))

    def test_directory_is_not_a_file(self, tmp_path):
        with pytest.raises(ValueError, match="Not a regular file"):
            server._validate_filepath(str(tmp_path))

    def test_wrong_extension(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("x")
        with pytest.raises(ValueError, match="Invalid file type"):
            server._validate_filepath(str(path), (".json",))


class TestValidateOutputPath:
    def test_requires_json(self, tmp_path):
        with pytest.raises(ValueError, match=r"\.json"):
            server._validate_output_path(str(tmp_path / "out.xml"))

    def test_parent_must_exist(self, tmp_path):
        with pytest.raises(ValueError, match="does not exist"):
            server._validate_output_path(str(tmp_path / "missing" / "out.json"))


# ============================================================
# Collaborators
# ============================================================


class TestDirectoryFileStorage:
    async def test_lists_visible_files(self, media_dir):
        files = await server.DirectoryFileStorage(str(media_dir)).get_all_files()
        assert [f["name"] for f in files] == ["logo.png", "theme.mp3"]
        assert files[0]["id"] == "logo" and files[0]["type"] == "image/png"
        assert files[0]["size"] == 8
        assert isinstance(files[0]["lastModified"], int)

    async def test_missing_directory(self, tmp_path):
        assert await server.DirectoryFileStorage(str(tmp_path / "none")).get_all_files() == []


# ============================================================
# Tools
# ============================================================


class TestRunCommand:
    async def test_saves_changed_project(self, project_path):
        result = await server.call_tool("run_command", {
            "project_path": project_path,
            "command": "/set-audio --id audio-a --volume 0.25",
        })
        assert "Saved to:" in text_of(result)
        payload = json.loads(result[1].text)
        assert payload["success"] is True
        assert load_project(project_path).composition.audios[0].volume == 0.25

    async def test_read_only_command_does_not_save(self, project_path):
        before = open(project_path, encoding="utf-8").read()
        result = await server.call_tool("run_command", {"project_path": project_path, "command": "/ls-notes"})
        assert "Saved to:" not in text_of(result)
        assert open(project_path, encoding="utf-8").read() == before

    async def test_failed_command_does_not_save(self, project_path):
        before = open(project_path, encoding="utf-8").read()
        result = await server.call_tool("run_command", {
            "project_path": project_path,
            "command": "/set-audio --id audio-a --volume 9",
        })
        assert "Invalid Volume" in text_of(result)
        assert json.loads(result[1].text)["error"] == "validation"
        assert open(project_path, encoding="utf-8").read() == before

    async def test_destructive_command_needs_confirm(self, project_path):
        result = await server.call_tool("run_command", {
            "project_path": project_path,
            "command": "/del-audio --id audio-a",
        })
        assert "Command Cancelled" in text_of(result)
        assert len(load_project(project_path).composition.audios) == 4

        await server.call_tool("run_command", {
            "project_path": project_path,
            "command": "/del-audio --id audio-a",
            "confirm": True,
        })
        assert len(load_project(project_path).composition.audios) == 3

    async def test_lists_media_directory(self, project_path, media_dir):
        result = await server.call_tool("run_command", {"project_path": project_path, "command": "/ls-files"})
        assert "theme.mp3" in text_of(result)
        assert ".DS_Store" not in text_of(result)

    async def test_plain_text(self, project_path):
        result = await server.call_tool("run_command", {"project_path": project_path, "command": "hello"})
        assert "Not a slash command" in text_of(result)
        assert len(result) == 1

    async def test_missing_project_file(self, tmp_path):
        result = await server.call_tool("run_command", {
            "project_path": str(tmp_path / "missing.json"),
            "command": "/help",
        })
        assert text_of(result).startswith("File not found")

    async def test_invalid_document(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("[1, 2]", encoding="utf-8")
        result = await server.call_tool("run_command", {"project_path": str(path), "command": "/help"})
        assert text_of(result).startswith("Validation error")


class TestListCommands:
    async def test_all(self):
        text = text_of(await server.call_tool("list_commands", {}))
        assert "/new-audio" in text and "/zoom-tl" in text

    async def test_query(self):
        text = text_of(await server.call_tool("list_commands", {"query": "note"}))
        assert "/new-note" in text and "/set-audio" not in text

    async def test_no_match(self):
        text = text_of(await server.call_tool("list_commands", {"query": "qqq"}))
        assert "No commands match" in text


class TestNewProject:
    async def test_creates_file(self, tmp_path):
        path = tmp_path / "fresh.json"
        result = await server.call_tool("new_project", {"output_path": str(path), "name": "Fresh", "fps": 24})
        assert "Created project 'Fresh'" in text_of(result)
        project = load_project(str(path))
        assert project.composition.fps == 24 and len(project.composition.pages) == 1

    @pytest.mark.parametrize("args", [{"fps": 0}, {"fps": 500}, {"width": 0}, {"height": 99999}])
    async def test_rejects_out_of_range(self, tmp_path, args):
        path = tmp_path / "fresh.json"
        result = await server.call_tool("new_project", {"output_path": str(path), **args})
        assert text_of(result).startswith("Validation error")
        assert not path.exists()


class TestListProjects:
    async def test_finds_json_files(self, project_path, tmp_path):
        text = text_of(await server.call_tool("list_projects", {"directory": str(tmp_path)}))
        assert "launch.json" in text

    async def test_empty_directory(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        text = text_of(await server.call_tool("list_projects", {"directory": str(empty)}))
        assert "No project files" in text


class TestCallTool:
    async def test_unknown_tool(self):
        assert text_of(await server.call_tool("render_video", {})) == "Unknown tool: render_video"

    async def test_unexpected_error_is_logged(self, monkeypatch, caplog):
        async def broken(arguments):
            raise RuntimeError("disk on fire")

        monkeypatch.setitem(server.TOOL_HANDLERS, "list_commands", broken)
        with caplog.at_level(logging.ERROR, logger="slashcut.server"):
            result = await server.call_tool("list_commands", {})
        assert text_of(result) == "Error: RuntimeError"
        assert "Tool list_commands failed" in caplog.text

    async def test_tools_are_advertised(self):
        names = [tool.name for tool in await server.list_tools()]
        assert names == ["list_projects", "run_command", "list_commands", "new_project"]


class TestResources:
    async def test_read_resource_summary(self, project_path):
        text = await server.read_resource(f"file://{project_path}")
        assert "Project: Launch Video" in text
        assert "Pages: 4" in text and "Audio tracks: 4" in text
