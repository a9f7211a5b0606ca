"""
Data models for the video-composition document.

A Project holds one Composition (canvas size, fps, pages, audio tracks),
free-floating notes, and the editor's app state. All time-valued fields
are integer frames at the composition's fps.
"""

import random
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

# ============================================================================
# LIMITS
# ============================================================================

VOLUME_RANGE: Tuple[float, float] = (0.0, 1.0)
TONE_FREQUENCY_RANGE: Tuple[float, float] = (0.01, 2.0)
OPACITY_RANGE: Tuple[float, float] = (0.0, 1.0)
FPS_RANGE: Tuple[int, int] = (1, 120)
MAX_WIDTH = 7680
MAX_HEIGHT = 4320
ZOOM_PERCENT_RANGE: Tuple[float, float] = (10.0, 1000.0)
MAX_NEW_PAGES = 20

DEFAULT_FPS = 30
DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
DEFAULT_AUDIO_SECONDS = 5
DEFAULT_PAGE_SECONDS = 5

# Maximum length for enum strings to prevent memory abuse
_MAX_ENUM_STRING_LENGTH = 64

_ID_ALPHABET = string.ascii_lowercase + string.digits


# ============================================================================
# ENUMS
# ============================================================================

def _normalize_enum_string(value: str, label: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"Expected str, got {type(value).__name__}")
    if '\x00' in value or any(ord(c) < 32 for c in value):
        raise ValueError(f"{label} contains invalid control characters")
    if len(value) > _MAX_ENUM_STRING_LENGTH:
        raise ValueError(f"{label} exceeds maximum length ({_MAX_ENUM_STRING_LENGTH} chars)")
    lowered = value.strip().lower()
    if not lowered:
        raise ValueError(f"{label} cannot be empty")
    return lowered


class ElementType(Enum):
    """Kinds of renderable page elements."""
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    GROUP = "group"

    @classmethod
    def from_string(cls, value: str) -> 'ElementType':
        """Convert a string to ElementType, accepting enum names and values.

        Examples:
            ElementType.from_string("text")  -> ElementType.TEXT
            ElementType.from_string("IMAGE") -> ElementType.IMAGE
        """
        lowered = _normalize_enum_string(value, "Element type")
        try:
            return cls(lowered)
        except ValueError:
            raise ValueError(
                f"Invalid element type: '{value}'. "
                f"Valid types: {', '.join(t.value for t in cls)}"
            )


class TextAlign(Enum):
    """Horizontal alignment of text elements."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"

    @classmethod
    def from_string(cls, value: str) -> 'TextAlign':
        lowered = _normalize_enum_string(value, "Text align")
        try:
            return cls(lowered)
        except ValueError:
            raise ValueError(
                f"Invalid text align: '{value}'. "
                f"Valid values: {', '.join(a.value for a in cls)}"
            )


# ============================================================================
# IDS
# ============================================================================

def generate_id(prefix: str, existing: Iterable[str] = ()) -> str:
    """Build a "<prefix>-<ms timestamp>-<random>" id unique among `existing`."""
    taken = set(existing)
    while True:
        suffix = ''.join(random.choices(_ID_ALPHABET, k=9))
        candidate = f"{prefix}-{int(time.time() * 1000)}-{suffix}"
        if candidate not in taken:
            return candidate


# ============================================================================
# CORE MODELS
# ============================================================================

@dataclass
class Element:
    """A renderable item on a page (text, image, video, or group)."""
    id: str
    type: ElementType
    left: float = 0
    top: float = 0
    width: float = 0
    height: float = 0
    z_index: Optional[int] = None
    text: Optional[str] = None
    src: Optional[str] = None
    font_size: Optional[int] = None
    color: Optional[str] = None
    font_family: Optional[str] = None
    font_weight: Optional[str] = None
    text_align: Optional[TextAlign] = None
    opacity: Optional[float] = None
    rotation: Optional[float] = None
    delay: Optional[int] = None  # frames before the element appears
    duration: Optional[int] = None  # frames visible, None = whole page
    animation: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        """Short human label: quoted text for text elements, file name otherwise."""
        if self.type == ElementType.TEXT:
            return f'"{self.text}"' if self.text else "Text element"
        if self.src:
            return self.src.rstrip('/').split('/')[-1]
        return f"{self.type.value} element"


@dataclass
class Page:
    """A sequential scene with a fixed frame duration."""
    id: str
    name: str
    duration: int  # frames
    background_color: Optional[str] = "white"
    elements: List[Element] = field(default_factory=list)


@dataclass
class Audio:
    """An audio track placed on the composition timeline."""
    id: str
    src: str
    volume: float = 1.0
    delay: int = 0
    duration: int = DEFAULT_AUDIO_SECONDS * DEFAULT_FPS
    trim_before: int = 0
    trim_after: int = 0
    playback_rate: float = 1.0
    muted: bool = False
    loop: bool = False
    tone_frequency: float = 1.0


@dataclass
class Note:
    """A free-floating annotation at a point in time."""
    id: str
    time: int  # frames
    text: str
    created_at: str = ""
    updated_at: Optional[str] = None


@dataclass
class Composition:
    """The timeline document: canvas, fps, pages, and audio tracks."""
    fps: int = DEFAULT_FPS
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    pages: List[Page] = field(default_factory=list)
    audios: List[Audio] = field(default_factory=list)

    @property
    def total_frames(self) -> int:
        return sum(p.duration for p in self.pages)

    def find_element(self, element_id: str) -> Optional[Tuple[Page, Element]]:
        """Locate an element and the page that owns it."""
        for page in self.pages:
            for element in page.elements:
                if element.id == element_id:
                    return page, element
        return None


@dataclass
class AppState:
    """Editor UI state the interpreter reads (and, for zoom, writes)."""
    selected_page_id: Optional[str] = None
    selected_element_id: Optional[str] = None
    current_time: int = 0  # frames
    zoom_level: float = 1.0
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Project:
    """Root document owned by the host session."""
    id: str
    name: str
    composition: Optional[Composition] = None
    notes: List[Note] = field(default_factory=list)
    app_state: AppState = field(default_factory=AppState)

    @property
    def fps(self) -> int:
        if self.composition is None:
            return DEFAULT_FPS
        return self.composition.fps or DEFAULT_FPS

    @property
    def selected_page(self) -> Optional[Page]:
        """The selected page, or the first page when nothing is selected."""
        if self.composition is None or not self.composition.pages:
            return None
        selected = self.app_state.selected_page_id
        for page in self.composition.pages:
            if page.id == selected:
                return page
        return self.composition.pages[0]


# ============================================================================
# FACTORIES
# ============================================================================

def default_page(fps: int = DEFAULT_FPS, name: str = "Page 1",
                 existing_ids: Iterable[str] = ()) -> Page:
    """A blank page lasting DEFAULT_PAGE_SECONDS."""
    return Page(
        id=generate_id("page", existing_ids),
        name=name,
        duration=DEFAULT_PAGE_SECONDS * fps,
        background_color="white",
        elements=[],
    )


def new_project(name: str = "Untitled Project", fps: int = DEFAULT_FPS,
                width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT) -> Project:
    """A project with a single blank page selected."""
    page = default_page(fps)
    return Project(
        id=generate_id("project"),
        name=name,
        composition=Composition(fps=fps, width=width, height=height, pages=[page]),
        notes=[],
        app_state=AppState(selected_page_id=page.id),
    )
