"""
Slash-command handlers and the built-in command catalog.

Every handler is an async function taking a CommandContext and returning a
CommandResult. Handlers raise CommandError subclasses for anything the user
did wrong; the dispatcher turns those into failure results.
"""

import dataclasses
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from .args import (
    DeletePageArgs,
    IdArgs,
    ListCompArgs,
    ListNotesArgs,
    NewAudioArgs,
    NewElementArgs,
    NewNoteArgs,
    NewPageArgs,
    NoArgs,
    Option,
    SetAudioArgs,
    SetCompArgs,
    SetElementArgs,
    SetNoteArgs,
    SetPageArgs,
    ZoomArgs,
    as_bool,
    as_float,
    as_int,
    color,
    duration,
    flag,
    int_in_range,
    opacity,
    parse_args,
    playback_rate,
    position,
    positive_duration,
    positive_float,
    positive_int,
    provided,
    text_align,
    tone_frequency,
    unit_interval,
)
from .document import composition_to_dict, note_to_dict, page_to_dict
from .errors import NotFoundError, ValidationError, no_project
from .models import (
    DEFAULT_AUDIO_SECONDS,
    FPS_RANGE,
    MAX_HEIGHT,
    MAX_NEW_PAGES,
    MAX_WIDTH,
    ZOOM_PERCENT_RANGE,
    Audio,
    Element,
    ElementType,
    Note,
    Page,
    Project,
    TextAlign,
    default_page,
    generate_id,
)
from .mutator import (
    AUDIOS,
    NOTES,
    PAGES,
    MoveMode,
    UpdateOutcome,
    append_entity,
    element_collection_for,
    elements_of,
    insert_entities,
    move_request,
    remove_entities,
    replace_entity,
    update_entity,
)
from .results import (
    CommandResult,
    bullet_list,
    info_result,
    json_block,
    plural,
    success_result,
)
from .timing import format_frames_to_duration

logger = logging.getLogger(__name__)

# Keys that carry file contents rather than metadata
BINARY_FILE_KEYS = ('dataUrl', 'blob', 'data', 'arrayBuffer')

AUDIO_FRAME_FIELDS = ('delay', 'duration', 'trim_before', 'trim_after')
ELEMENT_FRAME_FIELDS = ('delay', 'duration')
TEXT_ONLY_FIELDS = ('text', 'font_size', 'color', 'font_family', 'font_weight', 'text_align')

DEFAULT_IMAGE_SIZE = (400, 300)
DEFAULT_VIDEO_SIZE = (320, 240)


# ============================================================================
# CONTEXT / COMMAND TYPES
# ============================================================================

@dataclass
class CommandContext:
    """
    Everything a handler may touch: the current document and collaborator
    handles. Handlers never mutate it; they return a new project instead.

    Attributes:
        project: current document, or None when nothing is loaded
        args: argument tokens after the command name
        file_storage: object with an async ``get_all_files()`` method
        show_json_editor: UI toggle used by ``/ls-comp --interactive``
        confirm: callback asked before destructive commands; may be async
    """
    project: Optional[Project] = None
    args: List[str] = field(default_factory=list)
    file_storage: Optional[Any] = None
    show_json_editor: Optional[Callable[[bool], Any]] = None
    confirm: Optional[Callable[[str], Any]] = None

    @property
    def fps(self) -> int:
        return self.project.fps if self.project is not None else 30

    def require_project(self) -> Project:
        if self.project is None or self.project.composition is None:
            raise no_project()
        return self.project

    def parse(self, shape, options: Sequence[Option], command_name: str,
              positional: Optional[str] = None):
        return parse_args(shape, options, self.args, self.fps, command_name, positional)


Handler = Callable[[CommandContext], Awaitable[CommandResult]]


@dataclass(frozen=True)
class SlashCommand:
    """A registered command: metadata plus its handler."""
    name: str
    description: str
    usage: str
    handler: Handler
    requires_confirmation: bool = False
    confirmation_message: Optional[str] = None


async def maybe_await(value: Any) -> Any:
    """Await `value` if a collaborator returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _duration(frames: Optional[int], fps: int) -> str:
    if frames is None:
        return "whole page"
    return format_frames_to_duration(frames, fps)


def _update_result(label: str, outcome: UpdateOutcome, total: int) -> CommandResult:
    """Combined message for a property merge and/or a reposition."""
    entity_id = outcome.entity.id
    if not outcome.changed:
        return info_result(
            f"{label} Unchanged",
            f"{label} '{entity_id}' already has the requested values. Nothing was changed.",
            outcome.project,
            icon="ℹ️",
            entity_id=entity_id,
        )

    parts = [f"Updated {label.lower()} '{entity_id}'."]
    if outcome.diff:
        parts.append("Changes:\n" + bullet_list(outcome.diff))
    if outcome.new_index != outcome.old_index:
        parts.append(
            f"Moved from position {outcome.old_index + 1} to {outcome.new_index + 1} of {total}."
        )
    return success_result(
        f"{label} Updated",
        "\n\n".join(parts),
        outcome.project,
        entity_id=entity_id,
        changes=list(outcome.diff),
    )


# ============================================================================
# OPTION TABLES
# ============================================================================

ID_OPTION = Option('id', '--id', '-i', example='audio-1700000000000-abc123xyz')
YES_FLAG = flag('yes', '--yes', '-y')
SRC_OPTION = Option('src', '--src', '-s', example='"https://example.com/media.mp3"')

AUDIO_VALUE_OPTIONS = [
    Option('volume', '--volume', '-v', convert=unit_interval, example='0.8'),
    Option('trim_before', '--trim-before', '-b', convert=duration, example='1s'),
    Option('trim_after', '--trim-after', '-a', convert=duration, example='2s'),
    Option('playback_rate', '--playback-rate', '-r', convert=playback_rate, example='1.5'),
    Option('tone_frequency', '--tone-frequency', '-f', convert=tone_frequency, example='1.2'),
    Option('delay', '--delay', '-d', convert=duration, example='2s'),
    Option('duration', '--duration', '-dr', convert=positive_duration, example='10s'),
]

NEW_AUDIO_OPTIONS = [
    SRC_OPTION,
    *AUDIO_VALUE_OPTIONS,
    flag('muted', '--muted', '-m'),
    flag('loop', '--loop', '-l'),
]

SET_AUDIO_OPTIONS = [
    ID_OPTION,
    SRC_OPTION,
    *AUDIO_VALUE_OPTIONS,
    Option('muted', '--muted', '-m', convert=as_bool, example='true'),
    Option('loop', '--loop', '-l', convert=as_bool, example='false'),
    Option('before', '--before', '-be', convert=position, example='2'),
    Option('after', '--after', '-af', convert=position, example='audio-1700000000000-abc123xyz'),
]

GEOMETRY_OPTIONS = [
    Option('left', '--left', '-l', convert=as_float, example='100'),
    Option('top', '--top', '-tp', convert=as_float, example='100'),
    Option('width', '--width', '-w', convert=positive_float, example='400'),
    Option('height', '--height', '-h', convert=positive_float, example='300'),
    Option('opacity', '--opacity', '-o', convert=opacity, example='0.8'),
    Option('rotation', '--rotation', '-r', convert=as_float, example='45'),
]

TEXT_STYLE_OPTIONS = [
    Option('text', '--text', '-t', example='"Hello World"'),
    Option('font_size', '--font-size', '-fs', convert=positive_int, example='24'),
    Option('color', '--color', '-c', convert=color, example='"#ff0000"'),
    Option('font_family', '--font-family', '-ff', example='"Arial, sans-serif"'),
    Option('font_weight', '--font-weight', '-fw', example='bold'),
    Option('text_align', '--text-align', '-ta', convert=text_align, example='center'),
]

ELEMENT_TIMING_OPTIONS = [
    Option('delay', '--delay', '-d', convert=duration, example='1s'),
    Option('duration', '--duration', '-dr', convert=positive_duration, example='3s'),
]

COPY_OPTION = Option('copy', '--copy', example='image-1700000000000-abc123xyz')

NEW_TEXT_OPTIONS = [*TEXT_STYLE_OPTIONS, *GEOMETRY_OPTIONS, *ELEMENT_TIMING_OPTIONS, COPY_OPTION]
NEW_MEDIA_OPTIONS = [SRC_OPTION, *GEOMETRY_OPTIONS, *ELEMENT_TIMING_OPTIONS, COPY_OPTION]

SET_ELEMENT_OPTIONS = [
    Option('id', '--id', '-i', example='text-1700000000000-abc123xyz'),
    Option('before', '--before', '-b', convert=position, example='1'),
    Option('after', '--after', '-a', convert=position, example='2'),
    *GEOMETRY_OPTIONS,
    Option('z_index', '--z-index', '-z', convert=as_int, example='10'),
    *TEXT_STYLE_OPTIONS,
    SRC_OPTION,
    *ELEMENT_TIMING_OPTIONS,
]

NOTE_TEXT_OPTION = Option('text', '--text', '-txt', example='"Fix the transition here"')
NOTE_TIME_OPTION = Option('time', '--time', '-t', convert=duration, example='1.5s')

PAGE_ID_OPTION = Option('id', '--id', '-i', example='page-1700000000000-abc123xyz')

SET_PAGE_OPTIONS = [
    PAGE_ID_OPTION,
    Option('new_id', '--new-id', example='intro'),
    Option('name', '--name', '-n', example='"Intro"'),
    Option('duration', '--duration', '-d', convert=duration, example='5s'),
    Option('background_color', '--background-color', '-bg', convert=color, example='"#000000"'),
    Option('before', '--before', '-b', convert=position, example='1'),
    Option('after', '--after', '-a', convert=position, example='1'),
]

SET_COMP_OPTIONS = [
    Option('title', '--title', '-t', example='"My Video"'),
    Option('fps', '--fps', '-f', convert=int_in_range(*FPS_RANGE), example='30'),
    Option('width', '--width', '-w', convert=int_in_range(1, MAX_WIDTH), example='1920'),
    Option('height', '--height', '-h', convert=int_in_range(1, MAX_HEIGHT), example='1080'),
]


# ============================================================================
# AUDIO
# ============================================================================

def _describe_audio(audio: Audio, fps: int) -> str:
    return bullet_list([
        f"ID: {audio.id}",
        f"Source: {audio.src}",
        f"Volume: {audio.volume}",
        f"Delay: {format_frames_to_duration(audio.delay, fps)}",
        f"Duration: {format_frames_to_duration(audio.duration, fps)}",
        f"Trim: {format_frames_to_duration(audio.trim_before, fps)} / "
        f"{format_frames_to_duration(audio.trim_after, fps)}",
        f"Playback rate: {audio.playback_rate}x",
        f"Tone frequency: {audio.tone_frequency}",
        f"Muted: {'yes' if audio.muted else 'no'}",
        f"Loop: {'yes' if audio.loop else 'no'}",
    ])


async def handle_new_audio(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(NewAudioArgs, NEW_AUDIO_OPTIONS, 'new-audio')
    if not args.src:
        raise ValidationError(
            "Audio source is required.\n\n"
            "Usage: `/new-audio --src url [--volume 0.8] [--delay 2s] [--duration 10s]`",
            title="Missing Source",
        )

    fps = project.fps
    audio = Audio(
        id=generate_id("audio", AUDIOS.ids(project)),
        src=args.src,
        duration=DEFAULT_AUDIO_SECONDS * fps,
    )
    audio = dataclasses.replace(audio, **provided(args, exclude=('src',)))
    updated = append_entity(project, AUDIOS, audio)

    return success_result(
        "Audio Track Added",
        f"Added audio track to the composition.\n\n{_describe_audio(audio, fps)}",
        updated,
        entity_id=audio.id,
    )


async def handle_set_audio(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(SetAudioArgs, SET_AUDIO_OPTIONS, 'set-audio')
    if not args.id:
        raise ValidationError(
            "Audio track ID is required.\n\nUsage: `/set-audio --id audio_id [--volume 0.5] [--after 1]`",
            title="Missing Audio ID",
        )
    move = move_request(args.before, args.after)
    changes = provided(args, exclude=('id', 'before', 'after'))
    if not changes and move is None:
        raise ValidationError(
            "Please specify at least one property to update or a new position.",
            title="No Changes Specified",
        )

    outcome = update_entity(
        project, AUDIOS, args.id, changes, project.fps,
        frame_fields=AUDIO_FRAME_FIELDS,
        move=move,
        numeric_mode=MoveMode.RELATIVE,
    )
    return _update_result("Audio Track", outcome, len(AUDIOS.items(project)))


async def handle_delete_audio(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(IdArgs, [ID_OPTION, YES_FLAG], 'del-audio')
    if not args.id:
        raise ValidationError(
            "Audio track ID is required.\n\nUsage: `/del-audio --id audio_id [--yes]`",
            title="Missing Audio ID",
        )
    _, audio = AUDIOS.require(project, args.id)
    updated = remove_entities(project, AUDIOS, [audio.id])
    return success_result(
        "Audio Track Deleted",
        f"Deleted audio track '{audio.id}':\n\n" + bullet_list([
            f"Source: {audio.src}",
            f"Volume: {audio.volume}",
            f"Duration: {format_frames_to_duration(audio.duration, project.fps)}",
        ]),
        updated,
        entity_id=audio.id,
    )


# ============================================================================
# ELEMENTS
# ============================================================================

def _describe_element(element: Element, fps: int) -> str:
    lines = [f"ID: {element.id}", f"Type: {element.type.value}"]
    if element.type == ElementType.TEXT:
        lines.append(f'Text: "{element.text}"')
        lines.append(f"Font: {element.font_size}px {element.font_family} ({element.font_weight})")
        lines.append(f"Color: {element.color}")
    elif element.src:
        lines.append(f"Source: {element.src}")
    lines.append(f"Position: ({element.left:g}, {element.top:g})")
    lines.append(f"Size: {element.width:g}×{element.height:g}")
    if element.opacity is not None:
        lines.append(f"Opacity: {element.opacity}")
    if element.rotation:
        lines.append(f"Rotation: {element.rotation:g}°")
    if element.delay:
        lines.append(f"Delay: {format_frames_to_duration(element.delay, fps)}")
    lines.append(f"Duration: {_duration(element.duration, fps)}")
    return bullet_list(lines)


def _centered(project: Project, width: float, height: float) -> Dict[str, Any]:
    composition = project.composition
    return dict(
        left=(composition.width - width) // 2,
        top=(composition.height - height) // 2,
        width=width,
        height=height,
    )


async def _stored_size(ctx: CommandContext, src: Optional[str]) -> Optional[Tuple[float, float]]:
    """Dimensions of the stored file whose name or data URL is ``src``, if known."""
    if not src or ctx.file_storage is None:
        return None
    try:
        files = await maybe_await(ctx.file_storage.get_all_files())
    except Exception:
        logger.warning("Could not read file storage for %s", src, exc_info=True)
        return None
    for record in files:
        if record.get('dataUrl') == src or record.get('name') == src:
            if record.get('width') and record.get('height'):
                return record['width'], record['height']
            return None
    return None


def _default_element(element_type: ElementType, project: Project) -> Dict[str, Any]:
    if element_type == ElementType.TEXT:
        return dict(
            text="New Text", left=100, top=100, width=200, height=50,
            font_size=32, color="#000000", font_family="Arial, sans-serif",
            font_weight="normal", text_align=TextAlign.LEFT,
        )
    size = DEFAULT_VIDEO_SIZE if element_type == ElementType.VIDEO else DEFAULT_IMAGE_SIZE
    values = _centered(project, *size)
    values.update(opacity=1.0, rotation=0)
    if element_type == ElementType.VIDEO:
        values['delay'] = 0
    return values


async def _add_element(ctx: CommandContext, element_type: ElementType, command_name: str,
                       options: Sequence[Option], title: str) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(NewElementArgs, options, command_name)
    page = project.selected_page
    if page is None:
        raise NotFoundError("The composition has no pages. Use `/new-page` to add one.", title="No Pages")

    values = _default_element(element_type, project)
    if args.copy:
        found = project.composition.find_element(args.copy)
        if found is None:
            raise NotFoundError(
                f"Cannot find element with ID '{args.copy}' to copy from.",
                title="Source Element Not Found",
            )
        source = found[1]
        if source.type != element_type:
            raise ValidationError(
                f"Element '{source.id}' is a {source.type.value} element, not {element_type.value}.",
                title="Invalid Copy Source",
            )
        values = {
            f.name: getattr(source, f.name)
            for f in dataclasses.fields(source)
            if f.name not in ('id', 'type')
        }
    if element_type != ElementType.TEXT:
        # Stored file dimensions replace the defaults; explicit options still win
        size = await _stored_size(ctx, args.src or values.get('src'))
        if size:
            values.update(_centered(project, *size))
    values.update(provided(args, exclude=('copy',)))

    if element_type != ElementType.TEXT and not values.get('src'):
        raise ValidationError(
            f"A source URL is required.\n\nUsage: `/{command_name} --src url`",
            title="Missing Source",
        )

    collection = elements_of(page.id)
    all_ids = [e.id for p in project.composition.pages for e in p.elements]
    element = Element(id=generate_id(element_type.value, all_ids), type=element_type, **values)
    updated = append_entity(project, collection, element)

    return success_result(
        title,
        f'Added {element_type.value} element to page "{page.name}"\n\n'
        f"{_describe_element(element, project.fps)}",
        updated,
        entity_id=element.id,
    )


async def handle_new_text(ctx: CommandContext) -> CommandResult:
    return await _add_element(ctx, ElementType.TEXT, 'new-text', NEW_TEXT_OPTIONS, "Text Element Added")


async def handle_new_image(ctx: CommandContext) -> CommandResult:
    return await _add_element(ctx, ElementType.IMAGE, 'new-image', NEW_MEDIA_OPTIONS, "Image Element Added")


async def handle_new_video(ctx: CommandContext) -> CommandResult:
    return await _add_element(ctx, ElementType.VIDEO, 'new-video', NEW_MEDIA_OPTIONS, "Video Element Added")


def _target_element_id(project: Project, *candidates: Optional[str]) -> str:
    for candidate in candidates:
        if candidate:
            return candidate
    if project.app_state.selected_element_id:
        return project.app_state.selected_element_id
    raise ValidationError(
        "No element ID provided and no element is currently selected.\n\n"
        "Select an element in the editor or pass `--id element_id`.",
        title="No Element Selected",
    )


async def handle_set_element(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(SetElementArgs, SET_ELEMENT_OPTIONS, 'set-element', positional='target')
    element_id = _target_element_id(project, args.id, args.target)
    move = move_request(args.before, args.after)
    changes = provided(args, exclude=('target', 'id', 'before', 'after'))
    if not changes and move is None:
        raise ValidationError(
            "Please specify at least one property to update or a new position.",
            title="No Changes Specified",
        )

    collection = element_collection_for(project, element_id)
    _, element = collection.require(project, element_id)
    if element.type == ElementType.TEXT:
        if 'src' in changes:
            raise ValidationError(
                "Option `--src` does not apply to text elements.",
                title="Invalid Option for Element Type",
            )
    else:
        rejected = [name for name in TEXT_ONLY_FIELDS if name in changes]
        if rejected:
            flags = ", ".join(f"`--{name.replace('_', '-')}`" for name in rejected)
            raise ValidationError(
                f"{flags} only apply to text elements; '{element.id}' is a {element.type.value} element.",
                title="Invalid Option for Element Type",
            )

    outcome = update_entity(
        project, collection, element_id, changes, project.fps,
        frame_fields=ELEMENT_FRAME_FIELDS,
        move=move,
        numeric_mode=MoveMode.ABSOLUTE,
    )
    return _update_result("Element", outcome, len(collection.items(project)))


async def handle_delete_element(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(IdArgs, [Option('id', '--id', '-i'), YES_FLAG], 'del-elem')
    element_id = _target_element_id(project, args.id)
    collection = element_collection_for(project, element_id)
    _, element = collection.require(project, element_id)
    page_index = PAGES.index_of(project, collection.page_id)
    page = PAGES.items(project)[page_index]

    updated = remove_entities(project, collection, [element_id])
    was_selected = project.app_state.selected_element_id == element_id
    if was_selected:
        updated = dataclasses.replace(
            updated, app_state=dataclasses.replace(updated.app_state, selected_element_id=None)
        )

    lines = [f"Element ID: {element.id}", f"Element type: {element.type.value}"]
    if element.text:
        lines.append(f'Text: "{element.text}"')
    elif element.src:
        lines.append(f"Source: {element.src}")
    lines.append(f"Page: {page.name}")
    if was_selected:
        lines.append("Selection cleared")
    return success_result(
        "Element Deleted",
        f'Deleted {element.display_name} from page "{page.name}"\n\n{bullet_list(lines)}',
        updated,
        entity_id=element.id,
    )


# ============================================================================
# NOTES
# ============================================================================

async def handle_new_note(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(NewNoteArgs, [NOTE_TEXT_OPTION, NOTE_TIME_OPTION], 'new-note')
    if not args.text:
        raise ValidationError(
            'Note text is required.\n\nUsage: `/new-note --text "note text" [--time 1.5s]`',
            title="Missing Text",
        )
    time = args.time if args.time is not None else project.app_state.current_time
    note = Note(
        id=generate_id("note", NOTES.ids(project)),
        time=time,
        text=args.text,
        created_at=_now(),
    )
    updated = append_entity(project, NOTES, note)
    return success_result(
        "Note Added",
        bullet_list([
            f"ID: {note.id}",
            f"Time: {format_frames_to_duration(note.time, project.fps)}",
            f'Text: "{note.text}"',
        ]),
        updated,
        entity_id=note.id,
    )


async def handle_set_note(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(SetNoteArgs, [ID_OPTION, NOTE_TEXT_OPTION, NOTE_TIME_OPTION], 'set-note')
    if not args.id:
        raise ValidationError(
            "Note ID is required.\n\nUsage: `/set-note --id note_id [--time 2s] [--text text]`",
            title="Missing Note ID",
        )
    changes = provided(args, exclude=('id',))
    if not changes:
        raise ValidationError(
            "At least one property must be specified to update.",
            title="No Changes Specified",
        )

    outcome = update_entity(project, NOTES, args.id, changes, project.fps, frame_fields=('time',))
    if outcome.changed:
        stamped = dataclasses.replace(outcome.entity, updated_at=_now())
        outcome.project = replace_entity(outcome.project, NOTES, outcome.new_index, stamped)
    return _update_result("Note", outcome, len(NOTES.items(project)))


async def handle_delete_note(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(IdArgs, [ID_OPTION, YES_FLAG], 'del-note')
    if not args.id:
        raise ValidationError(
            "Note ID is required.\n\nUsage: `/del-note --id note_id`\n\n"
            "Use `/ls-notes` to see available notes.",
            title="Missing Note ID",
        )
    _, note = NOTES.require(project, args.id)
    updated = remove_entities(project, NOTES, [note.id])
    return success_result(
        "Note Deleted",
        f"Note '{note.id}' has been deleted.\n\n" + bullet_list([
            f"Time: {format_frames_to_duration(note.time, project.fps)}",
            f'Text: "{note.text}"',
        ]) + f"\n\nRemaining notes: {len(updated.notes)}",
        updated,
        entity_id=note.id,
    )


async def handle_list_notes(ctx: CommandContext) -> CommandResult:
    project = ctx.project
    if project is None:
        raise no_project()
    args = ctx.parse(ListNotesArgs, [Option('query', '--query', '-q', example='intro')], 'ls-notes')

    notes = list(project.notes)
    if args.query:
        needle = args.query.lower()
        notes = [n for n in notes if needle in n.text.lower()]
    notes.sort(key=lambda n: n.time)

    if not notes:
        body = (
            f"No notes match '{args.query}'." if args.query
            else "This project has no notes. Use `/new-note` to add one."
        )
        return info_result("Notes", body, project, data=[])

    fps = project.fps
    lines = [
        f"[{format_frames_to_duration(n.time, fps)}] {n.text} ({n.id})"
        for n in notes
    ]
    title = f"Notes matching '{args.query}'" if args.query else "Notes"
    return info_result(
        title,
        f"{plural(len(notes), 'note')}:\n\n{bullet_list(lines)}",
        project,
        data=[note_to_dict(n) for n in notes],
    )


# ============================================================================
# PAGES
# ============================================================================

def _target_page(project: Project, *candidates: Optional[str]) -> Page:
    pages = PAGES.items(project)
    if not pages:
        raise NotFoundError("The composition has no pages. Use `/new-page` to add pages.", title="No Pages")
    for candidate in candidates:
        if candidate:
            return PAGES.require(project, candidate)[1]
    return project.selected_page


async def handle_new_page(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(
        NewPageArgs,
        [
            Option('num', '--num', '-n', convert=int_in_range(1, MAX_NEW_PAGES), example='3'),
            Option('copy', '--copy', example='page-1700000000000-abc123xyz'),
        ],
        'new-page',
    )
    pages = PAGES.items(project)
    count = args.num or 1

    source = None
    if args.copy:
        index = PAGES.index_of(project, args.copy)
        if index == -1:
            raise NotFoundError(
                f"Cannot find page with ID '{args.copy}' to copy from.",
                title="Source Page Not Found",
            )
        source = pages[index]

    selected = project.selected_page
    insert_at = PAGES.index_of(project, selected.id) + 1 if selected is not None else 0

    taken = set(PAGES.ids(project))
    element_ids = {e.id for p in pages for e in p.elements}
    new_pages: List[Page] = []
    for i in range(count):
        if source is not None:
            suffix = "" if i == 0 else f" {i + 1}"
            elements = []
            for element in source.elements:
                new_id = generate_id(element.type.value, element_ids)
                element_ids.add(new_id)
                elements.append(dataclasses.replace(element, id=new_id))
            page = dataclasses.replace(
                source,
                id=generate_id("page", taken),
                name=f"{source.name} Copy{suffix}",
                elements=elements,
            )
        else:
            page = default_page(project.fps, f"Page {len(pages) + i + 1}", taken)
        taken.add(page.id)
        new_pages.append(page)

    updated = insert_entities(project, PAGES, insert_at, new_pages)
    updated = dataclasses.replace(
        updated,
        app_state=dataclasses.replace(
            updated.app_state, selected_page_id=new_pages[0].id, selected_element_id=None
        ),
    )

    where = "at the beginning" if insert_at == 0 else f"after page {insert_at}"
    copied = f' (copied from page "{source.name}")' if source is not None else ""
    noun = "Page" if count == 1 else "Pages"
    return success_result(
        f"{count} New {noun} Added",
        f"{plural(count, 'page')} added {where}{copied}. The first new page is now selected.",
        updated,
        entity_id=new_pages[0].id,
    )


async def handle_set_page(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(SetPageArgs, SET_PAGE_OPTIONS, 'set-page', positional='target')
    page = _target_page(project, args.id, args.target)
    move = move_request(args.before, args.after)

    changes = provided(args, exclude=('target', 'id', 'new_id', 'before', 'after'))
    if args.new_id is not None and args.new_id != page.id:
        if PAGES.index_of(project, args.new_id) != -1:
            raise ValidationError(f"Page ID '{args.new_id}' already exists.", title="Duplicate ID")
        changes['id'] = args.new_id
    if not changes and move is None and args.new_id is None:
        raise ValidationError(
            "Please specify at least one property to update or a new position.",
            title="No Changes Specified",
        )

    outcome = update_entity(
        project, PAGES, page.id, changes, project.fps,
        frame_fields=('duration',),
        move=move,
        numeric_mode=MoveMode.RELATIVE,
    )
    if 'id' in changes and project.app_state.selected_page_id == page.id:
        outcome.project = dataclasses.replace(
            outcome.project,
            app_state=dataclasses.replace(outcome.project.app_state, selected_page_id=args.new_id),
        )
    return _update_result("Page", outcome, len(PAGES.items(project)))


async def handle_delete_page(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(
        DeletePageArgs,
        [
            PAGE_ID_OPTION,
            Option('num', '--num', '-n', convert=int_in_range(1, 50), example='2'),
            YES_FLAG,
        ],
        'del-page',
    )
    page = _target_page(project, args.id)
    pages = PAGES.items(project)
    start = PAGES.index_of(project, page.id)
    doomed = pages[start:start + (args.num or 1)]
    if len(doomed) >= len(pages):
        raise ValidationError(
            "You cannot delete all pages from the project. At least one page must remain.",
            title="Cannot Delete All Pages",
        )

    doomed_ids = [p.id for p in doomed]
    updated = remove_entities(project, PAGES, doomed_ids)
    remaining = PAGES.items(updated)

    state = updated.app_state
    selected = project.selected_page
    if selected is not None and selected.id in doomed_ids:
        replacement = remaining[min(start, len(remaining) - 1)]
        state = dataclasses.replace(state, selected_page_id=replacement.id, selected_element_id=None)
        updated = dataclasses.replace(updated, app_state=state)
    new_selected = updated.selected_page

    names = ", ".join(f'"{p.name}"' for p in doomed)
    noun = "Page" if len(doomed) == 1 else "Pages"
    return success_result(
        f"{len(doomed)} {noun} Deleted",
        f'Deleted {noun.lower()}: {names}. "{new_selected.name}" is now selected.',
        updated,
        entity_id=doomed_ids[0],
    )


async def handle_list_page(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(IdArgs, [PAGE_ID_OPTION], 'ls-page')
    page = _target_page(project, args.id)
    payload = page_to_dict(page)
    return info_result(f'Page "{page.name}"', json_block(payload), project, icon="📄",
                       entity_id=page.id, data=payload)


# ============================================================================
# COMPOSITION / FILES / TIMELINE
# ============================================================================

async def handle_list_composition(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(ListCompArgs, [flag('interactive', '--interactive', '-i')], 'ls-comp')

    if args.interactive:
        if ctx.show_json_editor is None:
            raise NotFoundError(
                "The interactive composition viewer is not available in this session.",
                title="Viewer Not Available",
            )
        await maybe_await(ctx.show_json_editor(True))
        return info_result(
            "Composition Viewer Opened",
            "The composition is now shown in the interactive JSON viewer.",
            project,
            icon="🧩",
        )

    payload = composition_to_dict(project.composition)
    return info_result("Composition", json_block(payload), project, icon="🧩", data=payload)


def strip_binary(record: Dict[str, Any]) -> Dict[str, Any]:
    """Drop file contents, keeping only metadata."""
    return {
        key: value for key, value in record.items()
        if key not in BINARY_FILE_KEYS and not isinstance(value, (bytes, bytearray, memoryview))
    }


async def handle_list_files(ctx: CommandContext) -> CommandResult:
    ctx.parse(NoArgs, [], 'ls-files')
    if ctx.file_storage is None:
        raise NotFoundError("File storage is not available.", title="No File Storage")

    files = [strip_binary(f) for f in await ctx.file_storage.get_all_files()]
    if not files:
        return info_result("Files", "No files in storage.", ctx.project, icon="📁", data=[])
    return info_result(
        f"Files ({len(files)})",
        json_block(files),
        ctx.project,
        icon="📁",
        data=files,
    )


async def handle_set_composition(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(SetCompArgs, SET_COMP_OPTIONS, 'set-comp')
    if not provided(args):
        raise ValidationError(
            "Please specify at least one property to update.\n\n"
            "Available options: --title, --fps, --width, --height",
            title="No Updates Specified",
        )

    composition = project.composition
    diff: List[str] = []
    if args.title is not None and args.title != project.name:
        diff.append(f'Title: "{project.name}" → "{args.title}"')
    comp_changes = {}
    for name, unit in (('fps', ''), ('width', 'px'), ('height', 'px')):
        value = getattr(args, name)
        if value is not None and value != getattr(composition, name):
            comp_changes[name] = value
            label = "FPS" if name == 'fps' else name.title()
            diff.append(f"{label}: {getattr(composition, name)}{unit} → {value}{unit}")

    if not diff:
        return info_result(
            "Composition Unchanged",
            "The composition already has the requested values. Nothing was changed.",
            project,
            icon="ℹ️",
        )

    updated = project
    if args.title is not None:
        updated = dataclasses.replace(updated, name=args.title)
    if comp_changes:
        updated = dataclasses.replace(updated, composition=dataclasses.replace(composition, **comp_changes))
    return success_result(
        "Composition Updated",
        f"Composition properties have been updated:\n\n{bullet_list(diff)}",
        updated,
        changes=diff,
    )


async def handle_zoom_timeline(ctx: CommandContext) -> CommandResult:
    project = ctx.require_project()
    args = ctx.parse(ZoomArgs, [], 'zoom-tl', positional='percentage')
    if args.percentage is None:
        raise ValidationError(
            "Please specify a zoom percentage. Usage: `/zoom-tl <percentage>`\n\n"
            "Example: `/zoom-tl 50%` or `/zoom-tl 150`",
            title="Missing Parameter",
        )
    try:
        requested = as_float(args.percentage.rstrip('%'), project.fps)
    except ValueError:
        requested = 0
    if requested <= 0:
        raise ValidationError(
            f"Invalid percentage value '{args.percentage}'. Please provide a positive number.\n\n"
            "Example: `/zoom-tl 50%` or `/zoom-tl 150`",
            title="Invalid Percentage",
        )

    low, high = ZOOM_PERCENT_RANGE
    clamped = max(low, min(high, requested))
    zoom_level = clamped / 100
    message = f"Timeline zoom set to {round(clamped)}%."
    if clamped != requested:
        message += (
            f"\n\n⚠️ *Zoom level was clamped from {requested:g}% to {round(clamped)}% "
            f"(valid range: {low:g}%-{high:g}%)*"
        )

    updated = project
    if project.app_state.zoom_level != zoom_level:
        updated = dataclasses.replace(
            project, app_state=dataclasses.replace(project.app_state, zoom_level=zoom_level)
        )
    return info_result("Timeline Zoom Updated", message, updated, icon="🔍")


# ============================================================================
# CATALOG
# ============================================================================

BUILTIN_COMMANDS: List[SlashCommand] = [
    SlashCommand(
        name='new-audio',
        description='Add an audio track to the composition',
        usage='/new-audio --src|-s url [--volume|-v 0-1] [--trim-before|-b time] [--trim-after|-a time] '
              '[--playback-rate|-r rate] [--muted|-m] [--loop|-l] [--tone-frequency|-f 0.01-2] '
              '[--delay|-d time] [--duration|-dr time]',
        handler=handle_new_audio,
    ),
    SlashCommand(
        name='set-audio',
        description='Update an audio track and optionally move it in the track list',
        usage='/set-audio --id|-i id [--src|-s url] [--volume|-v 0-1] [--trim-before|-b time] '
              '[--trim-after|-a time] [--playback-rate|-r rate] [--muted|-m true|false] '
              '[--loop|-l true|false] [--tone-frequency|-f 0.01-2] [--delay|-d time] '
              '[--duration|-dr time] [--before|-be n|id] [--after|-af n|id]',
        handler=handle_set_audio,
    ),
    SlashCommand(
        name='del-audio',
        description='Delete an audio track',
        usage='/del-audio --id|-i id [--yes|-y]',
        handler=handle_delete_audio,
        requires_confirmation=True,
        confirmation_message='Are you sure you want to delete this audio track?',
    ),
    SlashCommand(
        name='new-text',
        description='Add a text element to the selected page',
        usage='/new-text [--text|-t "text"] [--font-size|-fs size] [--color|-c color] '
              '[--font-family|-ff family] [--font-weight|-fw weight] [--text-align|-ta align] '
              '[--left|-l x] [--top|-tp y] [--width|-w width] [--copy id]',
        handler=handle_new_text,
    ),
    SlashCommand(
        name='new-image',
        description='Add an image element to the selected page',
        usage='/new-image --src|-s url [--left|-l x] [--top|-tp y] [--width|-w width] '
              '[--height|-h height] [--opacity|-o opacity] [--rotation|-r degrees] [--copy id]',
        handler=handle_new_image,
    ),
    SlashCommand(
        name='new-video',
        description='Add a video element to the selected page',
        usage='/new-video --src|-s url [--left|-l x] [--top|-tp y] [--width|-w width] '
              '[--height|-h height] [--opacity|-o opacity] [--rotation|-r degrees] [--delay|-d time]',
        handler=handle_new_video,
    ),
    SlashCommand(
        name='set-element',
        description='Update an element and optionally move it within its page',
        usage='/set-element [id] [--id|-i id] [--before|-b n|id] [--after|-a n|id] [--left|-l x] '
              '[--top|-tp y] [--width|-w w] [--height|-h h] [--z-index|-z n] [--opacity|-o 0-1] '
              '[--rotation|-r deg] [--text|-t text] [--src|-s url] [--font-size|-fs n] '
              '[--color|-c color] [--font-family|-ff family] [--font-weight|-fw weight] '
              '[--text-align|-ta align] [--delay|-d time] [--duration|-dr time]',
        handler=handle_set_element,
    ),
    SlashCommand(
        name='del-elem',
        description='Delete an element (the selected one by default)',
        usage='/del-elem [--id|-i id] [--yes|-y]',
        handler=handle_delete_element,
        requires_confirmation=True,
        confirmation_message='Are you sure you want to delete this element?',
    ),
    SlashCommand(
        name='new-note',
        description='Add a note at a point in time',
        usage='/new-note --text|-txt "text" [--time|-t time]',
        handler=handle_new_note,
    ),
    SlashCommand(
        name='set-note',
        description='Update the text or time of a note',
        usage='/set-note --id|-i id [--text|-txt "text"] [--time|-t time]',
        handler=handle_set_note,
    ),
    SlashCommand(
        name='del-note',
        description='Delete a note',
        usage='/del-note --id|-i id [--yes|-y]',
        handler=handle_delete_note,
        requires_confirmation=True,
        confirmation_message='Are you sure you want to delete this note?',
    ),
    SlashCommand(
        name='ls-notes',
        description='List notes sorted by time, optionally filtered by text',
        usage='/ls-notes [--query|-q text]',
        handler=handle_list_notes,
    ),
    SlashCommand(
        name='new-page',
        description='Add blank page(s) after the selected page, or copies of an existing page',
        usage='/new-page [--num|-n 1-20] [--copy id]',
        handler=handle_new_page,
    ),
    SlashCommand(
        name='set-page',
        description='Update a page and optionally move it',
        usage='/set-page [id] [--id|-i id] [--new-id id] [--name|-n name] [--duration|-d time] '
              '[--background-color|-bg color] [--before|-b n|id] [--after|-a n|id]',
        handler=handle_set_page,
    ),
    SlashCommand(
        name='del-page',
        description='Delete the selected page (or --num pages starting at it)',
        usage='/del-page [--id|-i id] [--num|-n n] [--yes|-y]',
        handler=handle_delete_page,
        requires_confirmation=True,
        confirmation_message='Are you sure you want to delete the page(s)?',
    ),
    SlashCommand(
        name='ls-page',
        description='Show the JSON of a page (the selected one by default)',
        usage='/ls-page [--id|-i id]',
        handler=handle_list_page,
    ),
    SlashCommand(
        name='ls-comp',
        description='Show the composition JSON',
        usage='/ls-comp [--interactive|-i]',
        handler=handle_list_composition,
    ),
    SlashCommand(
        name='set-comp',
        description='Update the project title and composition settings',
        usage='/set-comp [--title|-t title] [--fps|-f 1-120] [--width|-w 1-7680] [--height|-h 1-4320]',
        handler=handle_set_composition,
    ),
    SlashCommand(
        name='ls-files',
        description='List stored files (metadata only)',
        usage='/ls-files',
        handler=handle_list_files,
    ),
    SlashCommand(
        name='zoom-tl',
        description='Set the timeline zoom level',
        usage='/zoom-tl <percentage>',
        handler=handle_zoom_timeline,
    ),
]
