"""
Project document I/O - converts between editor JSON (camelCase) and models.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ValidationError
from .models import (
    DEFAULT_FPS,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    AppState,
    Audio,
    Composition,
    Element,
    ElementType,
    Note,
    Page,
    Project,
    TextAlign,
)

# Maximum project file size (50 MB) - prevents memory exhaustion from crafted files
_MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024

# model attribute -> JSON key, for element fields other than id/type/extra
_ELEMENT_KEYS = {
    'left': 'left',
    'top': 'top',
    'width': 'width',
    'height': 'height',
    'z_index': 'zIndex',
    'text': 'text',
    'src': 'src',
    'font_size': 'fontSize',
    'color': 'color',
    'font_family': 'fontFamily',
    'font_weight': 'fontWeight',
    'text_align': 'textAlign',
    'opacity': 'opacity',
    'rotation': 'rotation',
    'delay': 'delay',
    'duration': 'duration',
    'animation': 'animation',
}

_AUDIO_KEYS = {
    'src': 'src',
    'volume': 'volume',
    'delay': 'delay',
    'duration': 'duration',
    'trim_before': 'trimBefore',
    'trim_after': 'trimAfter',
    'playback_rate': 'playbackRate',
    'muted': 'muted',
    'loop': 'loop',
    'tone_frequency': 'toneFrequency',
}

_APP_STATE_KEYS = {
    'selected_page_id': 'selectedPageId',
    'selected_element_id': 'selectedElementId',
    'current_time': 'currentTime',
    'zoom_level': 'zoomLevel',
}


def _require(data: Dict[str, Any], key: str, what: str) -> Any:
    if key not in data:
        raise ValidationError(f"{what} is missing required field '{key}'", title="Invalid Document")
    return data[key]


# ============================================================================
# ELEMENTS
# ============================================================================

def element_from_dict(data: Dict[str, Any]) -> Element:
    try:
        element_type = ElementType.from_string(_require(data, 'type', 'Element'))
    except (TypeError, ValueError) as e:
        raise ValidationError(str(e), title="Invalid Document")
    values: Dict[str, Any] = {}
    for attr, key in _ELEMENT_KEYS.items():
        if key in data and data[key] is not None:
            values[attr] = data[key]
    if 'text_align' in values:
        try:
            values['text_align'] = TextAlign.from_string(values['text_align'])
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e), title="Invalid Document")
    known = set(_ELEMENT_KEYS.values()) | {'id', 'type'}
    extra = {k: v for k, v in data.items() if k not in known}
    return Element(id=str(_require(data, 'id', 'Element')), type=element_type, extra=extra, **values)


def element_to_dict(element: Element) -> Dict[str, Any]:
    out: Dict[str, Any] = {'id': element.id, 'type': element.type.value}
    for attr, key in _ELEMENT_KEYS.items():
        value = getattr(element, attr)
        if value is None:
            continue
        if isinstance(value, TextAlign):
            value = value.value
        out[key] = value
    out.update(element.extra)
    return out


# ============================================================================
# PAGES / AUDIO / NOTES
# ============================================================================

def page_from_dict(data: Dict[str, Any]) -> Page:
    return Page(
        id=str(_require(data, 'id', 'Page')),
        name=data.get('name', ''),
        duration=int(data.get('duration', 0)),
        background_color=data.get('backgroundColor'),
        elements=[element_from_dict(e) for e in data.get('elements', [])],
    )


def page_to_dict(page: Page) -> Dict[str, Any]:
    out: Dict[str, Any] = {'id': page.id, 'name': page.name, 'duration': page.duration}
    if page.background_color is not None:
        out['backgroundColor'] = page.background_color
    out['elements'] = [element_to_dict(e) for e in page.elements]
    return out


def audio_from_dict(data: Dict[str, Any]) -> Audio:
    values = {attr: data[key] for attr, key in _AUDIO_KEYS.items() if key in data}
    values.pop('src', None)
    return Audio(id=str(_require(data, 'id', 'Audio track')), src=data.get('src', ''), **values)


def audio_to_dict(audio: Audio) -> Dict[str, Any]:
    out: Dict[str, Any] = {'id': audio.id}
    for attr, key in _AUDIO_KEYS.items():
        out[key] = getattr(audio, attr)
    return out


def note_from_dict(data: Dict[str, Any]) -> Note:
    return Note(
        id=str(_require(data, 'id', 'Note')),
        time=int(data.get('time', 0)),
        text=data.get('text', ''),
        created_at=data.get('createdAt', ''),
        updated_at=data.get('updatedAt'),
    )


def note_to_dict(note: Note) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        'id': note.id,
        'time': note.time,
        'text': note.text,
        'createdAt': note.created_at,
    }
    if note.updated_at is not None:
        out['updatedAt'] = note.updated_at
    return out


# ============================================================================
# COMPOSITION / PROJECT
# ============================================================================

def composition_from_dict(data: Dict[str, Any]) -> Composition:
    fps = int(data.get('fps') or DEFAULT_FPS)
    if fps <= 0:
        raise ValidationError(f"Composition fps must be positive, got {fps}", title="Invalid Document")
    return Composition(
        fps=fps,
        width=int(data.get('width', DEFAULT_WIDTH)),
        height=int(data.get('height', DEFAULT_HEIGHT)),
        pages=[page_from_dict(p) for p in data.get('pages') or []],
        audios=[audio_from_dict(a) for a in data.get('audios') or []],
    )


def composition_to_dict(composition: Composition) -> Dict[str, Any]:
    return {
        'fps': composition.fps,
        'width': composition.width,
        'height': composition.height,
        'pages': [page_to_dict(p) for p in composition.pages],
        'audios': [audio_to_dict(a) for a in composition.audios],
    }


def app_state_from_dict(data: Optional[Dict[str, Any]]) -> AppState:
    data = data or {}
    values = {attr: data[key] for attr, key in _APP_STATE_KEYS.items() if data.get(key) is not None}
    extra = {k: v for k, v in data.items() if k not in _APP_STATE_KEYS.values()}
    return AppState(extra=extra, **values)


def app_state_to_dict(state: AppState) -> Dict[str, Any]:
    out = {key: getattr(state, attr) for attr, key in _APP_STATE_KEYS.items()}
    out.update(state.extra)
    return out


def project_from_dict(data: Dict[str, Any]) -> Project:
    """Build a Project from editor JSON. Raises ValidationError on bad input."""
    if not isinstance(data, dict):
        raise ValidationError("Project document must be a JSON object", title="Invalid Document")
    composition = data.get('composition')
    try:
        return Project(
            id=str(data.get('id', '')),
            name=data.get('name', 'Untitled Project'),
            composition=composition_from_dict(composition) if composition is not None else None,
            notes=[note_from_dict(n) for n in data.get('notes') or []],
            app_state=app_state_from_dict(data.get('appState')),
        )
    except (TypeError, ValueError) as e:
        if isinstance(e, ValidationError):
            raise
        raise ValidationError(str(e), title="Invalid Document")


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        'id': project.id,
        'name': project.name,
        'composition': composition_to_dict(project.composition) if project.composition else None,
        'notes': [note_to_dict(n) for n in project.notes],
        'appState': app_state_to_dict(project.app_state),
    }


# ============================================================================
# FILES
# ============================================================================

def load_project(filepath: str) -> Project:
    """Read a project JSON file.

    Enforces a file size limit before reading.
    """
    path = Path(filepath)
    file_size = path.stat().st_size
    if file_size > _MAX_FILE_SIZE_BYTES:
        raise ValueError(
            f"Project file exceeds maximum size "
            f"({file_size / 1024 / 1024:.1f} MB > "
            f"{_MAX_FILE_SIZE_BYTES / 1024 / 1024:.0f} MB limit)"
        )
    with open(path, encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Not valid JSON: {e}", title="Invalid Document")
    return project_from_dict(data)


def save_project(project: Project, filepath: str) -> str:
    """Write a project as pretty-printed JSON and return the path."""
    path = Path(filepath)
    path.write_text(json.dumps(project_to_dict(project), indent=2, ensure_ascii=False) + "\n",
                    encoding='utf-8')
    return str(path)
