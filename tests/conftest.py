"""Shared fixtures: a small four-page project with elements, audio, and notes."""

import copy

import pytest

from slashcut.document import project_from_dict

SAMPLE_DATA = {
    "id": "project-1",
    "name": "Launch Video",
    "composition": {
        "fps": 30,
        "width": 1920,
        "height": 1080,
        "pages": [
            {
                "id": "page-1",
                "name": "Intro",
                "duration": 150,
                "backgroundColor": "white",
                "elements": [
                    {"id": "el-a", "type": "text", "left": 100, "top": 100, "width": 200, "height": 50,
                     "text": "Hello", "fontSize": 32, "color": "#000000", "textAlign": "left"},
                    {"id": "el-b", "type": "image", "left": 760, "top": 390, "width": 400, "height": 300,
                     "src": "https://example.com/logo.png", "opacity": 1},
                    {"id": "el-c", "type": "video", "left": 0, "top": 0, "width": 1920, "height": 1080,
                     "src": "https://example.com/clip.mp4", "delay": 0},
                    {"id": "el-d", "type": "text", "left": 100, "top": 900, "width": 600, "height": 60,
                     "text": "Subscribe", "fontSize": 24, "customFlag": True},
                ],
            },
            {"id": "page-2", "name": "Features", "duration": 90, "backgroundColor": "#000000", "elements": []},
            {"id": "page-3", "name": "Pricing", "duration": 120, "elements": []},
            {"id": "page-4", "name": "Outro", "duration": 60, "elements": []},
        ],
        "audios": [
            {"id": "audio-a", "src": "music.mp3", "volume": 1.0, "delay": 0, "duration": 150},
            {"id": "audio-b", "src": "voice.mp3", "volume": 0.8, "delay": 30, "duration": 300},
            {"id": "audio-c", "src": "whoosh.mp3", "volume": 0.5, "delay": 0, "duration": 15},
            {"id": "audio-d", "src": "outro.mp3", "volume": 1.0, "delay": 360, "duration": 60},
        ],
    },
    "notes": [
        {"id": "note-1", "time": 60, "text": "Fix intro timing", "createdAt": "2025-01-01T00:00:00Z"},
        {"id": "note-2", "time": 30, "text": "Check logo color", "createdAt": "2025-01-01T00:00:01Z"},
        {"id": "note-3", "time": 90, "text": "INTRO music too loud", "createdAt": "2025-01-01T00:00:02Z"},
    ],
    "appState": {
        "selectedPageId": "page-1",
        "selectedElementId": "el-a",
        "currentTime": 45,
        "zoomLevel": 1.0,
        "showGrid": False,
    },
}


class FakeFileStorage:
    """In-memory file-metadata store; records carry binary payloads to be stripped."""

    def __init__(self, files=None):
        self.files = files if files is not None else [
            {"id": "f1", "name": "logo.png", "type": "image/png", "size": 2048,
             "dataUrl": "data:image/png;base64,AAAA", "width": 400, "height": 300},
            {"id": "f2", "name": "music.mp3", "type": "audio/mpeg", "size": 4096,
             "blob": b"\x00\x01", "arrayBuffer": b"\x00"},
            {"id": "f3", "name": "notes.txt", "type": "text/plain", "size": 12,
             "data": "hello", "preview": bytearray(b"x")},
        ]
        self.calls = 0

    async def get_all_files(self):
        self.calls += 1
        return self.files


@pytest.fixture
def sample_data():
    return copy.deepcopy(SAMPLE_DATA)


@pytest.fixture
def project(sample_data):
    return project_from_dict(sample_data)


@pytest.fixture
def file_storage():
    return FakeFileStorage()


@pytest.fixture
def make_file_storage():
    return FakeFileStorage
