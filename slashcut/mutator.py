"""
Immutable updates of the project document.

Nothing here mutates an existing Project, Composition, Page, or entity:
every operation returns a new Project whose unchanged substructure is
shared by reference with the old one.

Elements, audio tracks, pages, and notes are all reached through an
EntityCollection, so adding, replacing, removing, and repositioning are
written once for every entity family.
"""

import dataclasses
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ConflictError, NotFoundError, ValidationError, no_project
from .models import Audio, Composition, Element, Note, Page, Project
from .timing import format_frames_to_duration

_NUMERIC = re.compile(r'^\d+$')


# ============================================================================
# ENTITY COLLECTIONS
# ============================================================================

class EntityCollection:
    """An ordered, id-addressable list of entities inside a project."""

    label = "Entity"
    list_hint = ""

    def items(self, project: Project) -> List[Any]:
        raise NotImplementedError

    def replace(self, project: Project, items: List[Any]) -> Project:
        """Return a new project with this collection swapped for `items`."""
        raise NotImplementedError

    def ids(self, project: Project) -> List[str]:
        return [item.id for item in self.items(project)]

    def index_of(self, project: Project, entity_id: str) -> int:
        for i, item in enumerate(self.items(project)):
            if item.id == entity_id:
                return i
        return -1

    def require(self, project: Project, entity_id: str) -> Tuple[int, Any]:
        """Find an entity by id or raise NotFoundError."""
        index = self.index_of(project, entity_id)
        if index == -1:
            detail = f"{self.label} with ID '{entity_id}' not found."
            if self.list_hint:
                detail += f"\n\n{self.list_hint}"
            raise NotFoundError(detail, title=f"{self.label} Not Found")
        return index, self.items(project)[index]


def _require_composition(project: Project) -> Composition:
    if project is None or project.composition is None:
        raise no_project()
    return project.composition


class PageCollection(EntityCollection):
    label = "Page"
    list_hint = "Use `/ls-comp` to see available pages."

    def items(self, project: Project) -> List[Page]:
        return _require_composition(project).pages

    def replace(self, project: Project, items: List[Page]) -> Project:
        composition = dataclasses.replace(_require_composition(project), pages=items)
        return dataclasses.replace(project, composition=composition)


class ElementCollection(EntityCollection):
    """The elements of one page."""

    label = "Element"
    list_hint = "Use `/ls-page` to see the elements of a page."

    def __init__(self, page_id: str):
        self.page_id = page_id

    def _page_index(self, project: Project) -> int:
        index = PAGES.index_of(project, self.page_id)
        if index == -1:
            raise NotFoundError(f"Page with ID '{self.page_id}' not found.", title="Page Not Found")
        return index

    def items(self, project: Project) -> List[Element]:
        return PAGES.items(project)[self._page_index(project)].elements

    def replace(self, project: Project, items: List[Element]) -> Project:
        index = self._page_index(project)
        pages = list(PAGES.items(project))
        pages[index] = dataclasses.replace(pages[index], elements=items)
        return PAGES.replace(project, pages)


class AudioCollection(EntityCollection):
    label = "Audio Track"
    list_hint = "Use `/ls-comp` to see available audio tracks."

    def items(self, project: Project) -> List[Audio]:
        return _require_composition(project).audios

    def replace(self, project: Project, items: List[Audio]) -> Project:
        composition = dataclasses.replace(_require_composition(project), audios=items)
        return dataclasses.replace(project, composition=composition)


class NoteCollection(EntityCollection):
    label = "Note"
    list_hint = "Use `/ls-notes` to see available notes."

    def items(self, project: Project) -> List[Note]:
        if project is None:
            raise no_project()
        return project.notes

    def replace(self, project: Project, items: List[Note]) -> Project:
        return dataclasses.replace(project, notes=items)


PAGES = PageCollection()
AUDIOS = AudioCollection()
NOTES = NoteCollection()


def elements_of(page_id: str) -> ElementCollection:
    return ElementCollection(page_id)


def element_collection_for(project: Project, element_id: str) -> ElementCollection:
    """Collection of the page that owns `element_id`."""
    found = _require_composition(project).find_element(element_id)
    if found is None:
        raise NotFoundError(
            f"Element with ID '{element_id}' not found in the composition.",
            title="Element Not Found",
        )
    return ElementCollection(found[0].id)


# ============================================================================
# ADD / REPLACE / REMOVE
# ============================================================================

def append_entity(project: Project, collection: EntityCollection, entity: Any) -> Project:
    items = list(collection.items(project))
    if any(item.id == entity.id for item in items):
        raise ValidationError(f"{collection.label} ID '{entity.id}' already exists.", title="Duplicate ID")
    items.append(entity)
    return collection.replace(project, items)


def insert_entities(project: Project, collection: EntityCollection, index: int,
                    entities: Sequence[Any]) -> Project:
    items = list(collection.items(project))
    index = max(0, min(len(items), index))
    items[index:index] = list(entities)
    return collection.replace(project, items)


def replace_entity(project: Project, collection: EntityCollection, index: int, entity: Any) -> Project:
    items = list(collection.items(project))
    items[index] = entity
    return collection.replace(project, items)


def remove_entities(project: Project, collection: EntityCollection, ids: Iterable[str]) -> Project:
    doomed = set(ids)
    items = [item for item in collection.items(project) if item.id not in doomed]
    return collection.replace(project, items)


# ============================================================================
# FIELD MERGE
# ============================================================================

def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def _render(value: Any, is_frames: bool, fps: int) -> str:
    if value is None:
        return "none"
    if is_frames and isinstance(value, int):
        return format_frames_to_duration(value, fps)
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def merge_fields(entity: Any, changes: Dict[str, Any], fps: int,
                 frame_fields: Iterable[str] = ()) -> Tuple[Any, List[str]]:
    """
    Shallow-merge `changes` into a copy of `entity`.

    Only fields whose value actually differs are applied and reported, so
    re-applying the current values yields the same entity and an empty diff.

    Returns:
        (entity, diff) where diff lines read "volume: 1.0 → 0.5"; frame
        fields are rendered as durations ("delay: 0f → 2s").
    """
    frame_fields = set(frame_fields)
    effective = {}
    diff: List[str] = []
    for name, new_value in changes.items():
        old_value = getattr(entity, name)
        if old_value == new_value:
            continue
        effective[name] = new_value
        is_frames = name in frame_fields
        diff.append(
            f"{_camel(name)}: {_render(old_value, is_frames, fps)} → {_render(new_value, is_frames, fps)}"
        )
    if not effective:
        return entity, []
    return dataclasses.replace(entity, **effective), diff


# ============================================================================
# REORDERING
# ============================================================================

class Direction(Enum):
    BEFORE = "before"
    AFTER = "after"


class MoveMode(Enum):
    ABSOLUTE = "absolute"  # --before N: slot N-1, --after N: slot N (1-indexed positions)
    RELATIVE = "relative"  # --before K: K slots earlier, --after K: K slots later
    SIBLING = "sibling"    # --before id / --after id


@dataclass(frozen=True)
class MoveRequest:
    direction: Direction
    value: str

    @property
    def is_numeric(self) -> bool:
        return bool(_NUMERIC.match(self.value))


def move_request(before: Optional[str], after: Optional[str]) -> Optional[MoveRequest]:
    """Build a move from --before/--after values; both at once is a conflict."""
    if before is not None and after is not None:
        raise ConflictError(
            "Cannot specify both `--after` and `--before`. Choose one positioning option.",
        )
    if before is not None:
        return MoveRequest(Direction.BEFORE, before)
    if after is not None:
        return MoveRequest(Direction.AFTER, after)
    return None


def compute_move_target(ids: Sequence[str], index: int, request: MoveRequest,
                        numeric_mode: MoveMode, label: str = "Entity") -> Tuple[int, MoveMode]:
    """
    Compute the unclamped target index against the list *before* removal.

    Numeric values use `numeric_mode` (ABSOLUTE or RELATIVE); anything else
    names a sibling in the same collection.
    """
    before = request.direction is Direction.BEFORE

    if request.is_numeric:
        n = int(request.value)
        if n < 1:
            raise ValidationError(
                f"Position must be a positive integer. Got '{request.value}'",
                title="Invalid Position",
            )
        if numeric_mode is MoveMode.ABSOLUTE:
            return (n - 1 if before else n), MoveMode.ABSOLUTE
        return (index - n if before else index + n), MoveMode.RELATIVE

    try:
        j = list(ids).index(request.value)
    except ValueError:
        raise NotFoundError(
            f"{label} with ID '{request.value}' not found in the same collection for positioning.\n\n"
            f"Available: {', '.join(repr(i) for i in ids)}",
            title=f"Reference {label} Not Found",
        )
    return (j if before else j + 1), MoveMode.SIBLING


def move_item(items: Sequence[Any], index: int, target: int) -> Tuple[List[Any], int]:
    """
    Remove items[index], clamp `target` to the post-removal insertion range,
    and insert. Returns the new list and the final index.
    """
    result = list(items)
    moved = result.pop(index)
    final = max(0, min(len(result), target))
    result.insert(final, moved)
    return result, final


@dataclass
class UpdateOutcome:
    """What an update-and-reposition call did."""
    project: Project
    entity: Any
    diff: List[str] = field(default_factory=list)
    old_index: int = 0
    new_index: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.diff) or self.new_index != self.old_index


def update_entity(
    project: Project,
    collection: EntityCollection,
    entity_id: str,
    changes: Dict[str, Any],
    fps: int,
    frame_fields: Iterable[str] = (),
    move: Optional[MoveRequest] = None,
    numeric_mode: MoveMode = MoveMode.RELATIVE,
) -> UpdateOutcome:
    """
    Merge `changes` into an entity and optionally reposition it.

    The move target is resolved before anything is modified, so a bad
    sibling id leaves the document untouched. When neither the fields nor
    the position change, the original project object is returned.
    """
    index, entity = collection.require(project, entity_id)
    items = collection.items(project)

    target = None
    if move is not None:
        target, _ = compute_move_target(
            [item.id for item in items], index, move, numeric_mode, collection.label
        )

    updated, diff = merge_fields(entity, changes, fps, frame_fields)

    new_items = list(items)
    new_items[index] = updated
    new_index = index
    if target is not None:
        new_items, new_index = move_item(new_items, index, target)

    if not diff and new_index == index:
        return UpdateOutcome(project, entity, [], index, index)

    return UpdateOutcome(
        project=collection.replace(project, new_items),
        entity=updated,
        diff=diff,
        old_index=index,
        new_index=new_index,
    )
