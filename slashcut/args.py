"""
Argument parsing for slash commands.

Each command declares a table of Options (long/short aliases, whether the
option takes a value, and a converter that validates it) and a frozen
dataclass describing its parsed arguments. `parse_args` scans the tokens
left to right, validates every value as it is consumed, and only builds
the dataclass once the whole list has parsed. The first problem raises
ValidationError, so nothing is ever half-applied.
"""

import re
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from .errors import ValidationError, missing_value, unknown_option
from .models import (
    OPACITY_RANGE,
    TONE_FREQUENCY_RANGE,
    VOLUME_RANGE,
    ElementType,
    TextAlign,
)
from .timing import parse_duration

T = TypeVar('T')

# A converter turns the raw token into a value or raises ValueError with a
# short reason; parse_args adds the option label and the offending token.
Converter = Callable[[str, int], Any]

_INT = re.compile(r'^[+-]?\d+$')
_FLOAT = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)$')
_COLOR = re.compile(r'^(#[0-9a-fA-F]{3,8}|rgba?\(.*\)|[a-zA-Z]+)$')

DURATION_FORMATS = "formats: `1000`, `500ms`, `1.5s`, `2m`, `30f`"


class OptionKind(Enum):
    VALUE = "value"  # consumes the next token
    FLAG = "flag"    # boolean switch, consumes nothing


# ============================================================================
# CONVERTERS
# ============================================================================

def as_text(raw: str, fps: int) -> str:
    return raw


def as_int(raw: str, fps: int) -> int:
    if not _INT.match(raw.strip()):
        raise ValueError("must be a whole number")
    return int(raw)


def positive_int(raw: str, fps: int) -> int:
    value = as_int(raw, fps)
    if value <= 0:
        raise ValueError("must be a positive whole number")
    return value


def int_in_range(low: int, high: int) -> Converter:
    def convert(raw: str, fps: int) -> int:
        value = as_int(raw, fps)
        if value < low or value > high:
            raise ValueError(f"must be between {low} and {high}")
        return value
    return convert


def as_float(raw: str, fps: int) -> float:
    if not _FLOAT.match(raw):
        raise ValueError("must be a number")
    return float(raw)


def positive_float(raw: str, fps: int) -> float:
    value = as_float(raw, fps)
    if value <= 0:
        raise ValueError("must be a positive number")
    return value


def float_in_range(low: float, high: float) -> Converter:
    def convert(raw: str, fps: int) -> float:
        try:
            value = as_float(raw, fps)
        except ValueError:
            raise ValueError(f"must be between {low:g} and {high:g}")
        if value < low or value > high:
            raise ValueError(f"must be between {low:g} and {high:g}")
        return value
    return convert


unit_interval = float_in_range(*VOLUME_RANGE)
opacity = float_in_range(*OPACITY_RANGE)
tone_frequency = float_in_range(*TONE_FREQUENCY_RANGE)
playback_rate = positive_float


def as_bool(raw: str, fps: int) -> bool:
    """Only the exact literals "true" and "false" are accepted."""
    if raw == "true":
        return True
    if raw == "false":
        return False
    raise ValueError("must be 'true' or 'false'")


def duration(raw: str, fps: int) -> int:
    """Non-negative duration in frames."""
    frames = parse_duration(raw, fps)
    if frames is None or frames < 0:
        raise ValueError(f"must be a non-negative duration ({DURATION_FORMATS})")
    return frames


def positive_duration(raw: str, fps: int) -> int:
    frames = parse_duration(raw, fps)
    if frames is None or frames <= 0:
        raise ValueError(f"must be a positive duration ({DURATION_FORMATS})")
    return frames


def choice(enum_cls: Type[Enum]) -> Converter:
    """Enumeration converter backed by the enum's `from_string`."""
    def convert(raw: str, fps: int) -> Enum:
        try:
            return enum_cls.from_string(raw)
        except (TypeError, ValueError):
            valid = ", ".join(f"'{m.value}'" for m in enum_cls)
            raise ValueError(f"must be one of {valid}")
    return convert


element_type = choice(ElementType)
text_align = choice(TextAlign)


def color(raw: str, fps: int) -> str:
    if not _COLOR.match(raw):
        raise ValueError("must be a hex (`#ff0000`), rgb()/rgba(), or CSS color name")
    return raw


def position(raw: str, fps: int) -> str:
    """Kept raw: a number or a sibling id, resolved by the mutator."""
    if not raw.strip():
        raise ValueError("must be a position number or an id")
    return raw.strip()


# ============================================================================
# OPTIONS
# ============================================================================

@dataclass(frozen=True)
class Option:
    """One command-line option with its aliases and converter."""
    name: str
    long: str
    short: Optional[str] = None
    kind: OptionKind = OptionKind.VALUE
    convert: Converter = as_text
    example: str = ""

    @property
    def label(self) -> str:
        return self.name.replace('_', ' ').title()

    @property
    def aliases(self) -> List[str]:
        return [self.long] + ([self.short] if self.short else [])


def flag(name: str, long: str, short: Optional[str] = None) -> Option:
    return Option(name, long, short, kind=OptionKind.FLAG)


def _index_options(options: Sequence[Option]) -> Dict[str, Option]:
    index: Dict[str, Option] = {}
    for opt in options:
        for alias in opt.aliases:
            index[alias] = opt
    return index


def parse_args(
    shape: Type[T],
    options: Sequence[Option],
    tokens: Sequence[str],
    fps: int,
    command_name: str,
    positional: Optional[str] = None,
) -> T:
    """
    Parse tokens into an instance of `shape`.

    Args:
        shape: frozen dataclass whose fields are the option names
        options: option table for the command
        tokens: argument tokens (already split by the dispatcher)
        fps: frame rate used by duration converters
        command_name: used in error messages
        positional: field filled by the first bare token, if the command
            accepts one

    Raises:
        ValidationError: unknown option, missing value, bad value, or an
            unexpected bare token.
    """
    index = _index_options(options)
    values: Dict[str, Any] = {}
    i = 0
    while i < len(tokens):
        token = tokens[i]
        opt = index.get(token)

        if opt is None:
            if token.startswith('-'):
                raise unknown_option(token, command_name)
            if positional and positional not in values:
                values[positional] = token
                i += 1
                continue
            raise ValidationError(
                f"Unexpected argument '{token}'. Use `/help` to see the usage of `/{command_name}`.",
                title="Unexpected Argument",
            )

        if opt.kind is OptionKind.FLAG:
            values[opt.name] = True
            i += 1
            continue

        if i + 1 >= len(tokens):
            raise missing_value(opt.long, opt.example)
        raw = tokens[i + 1]
        try:
            values[opt.name] = opt.convert(raw, fps)
        except ValueError as e:
            raise ValidationError(f"{opt.label} {e}. Got '{raw}'", title=f"Invalid {opt.label}")
        i += 2

    return shape(**values)


def provided(args: Any, exclude: Sequence[str] = ()) -> Dict[str, Any]:
    """Fields of a parsed-args dataclass that were actually given."""
    return {
        f.name: getattr(args, f.name)
        for f in fields(args)
        if f.name not in exclude and getattr(args, f.name) is not None
    }


# ============================================================================
# ARGUMENT SHAPES
# ============================================================================

@dataclass(frozen=True)
class NewAudioArgs:
    src: Optional[str] = None
    volume: Optional[float] = None
    trim_before: Optional[int] = None
    trim_after: Optional[int] = None
    playback_rate: Optional[float] = None
    muted: Optional[bool] = None
    loop: Optional[bool] = None
    tone_frequency: Optional[float] = None
    delay: Optional[int] = None
    duration: Optional[int] = None


@dataclass(frozen=True)
class SetAudioArgs:
    id: Optional[str] = None
    src: Optional[str] = None
    volume: Optional[float] = None
    trim_before: Optional[int] = None
    trim_after: Optional[int] = None
    playback_rate: Optional[float] = None
    muted: Optional[bool] = None
    loop: Optional[bool] = None
    tone_frequency: Optional[float] = None
    delay: Optional[int] = None
    duration: Optional[int] = None
    before: Optional[str] = None
    after: Optional[str] = None


@dataclass(frozen=True)
class IdArgs:
    """Commands that only take an id (plus an optional --yes)."""
    id: Optional[str] = None
    yes: Optional[bool] = None


@dataclass(frozen=True)
class NewElementArgs:
    text: Optional[str] = None
    src: Optional[str] = None
    left: Optional[float] = None
    top: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    opacity: Optional[float] = None
    rotation: Optional[float] = None
    font_size: Optional[int] = None
    color: Optional[str] = None
    font_family: Optional[str] = None
    font_weight: Optional[str] = None
    text_align: Optional[TextAlign] = None
    delay: Optional[int] = None
    duration: Optional[int] = None
    copy: Optional[str] = None


@dataclass(frozen=True)
class SetElementArgs:
    target: Optional[str] = None  # bare positional id
    id: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None
    left: Optional[float] = None
    top: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    z_index: Optional[int] = None
    opacity: Optional[float] = None
    rotation: Optional[float] = None
    text: Optional[str] = None
    src: Optional[str] = None
    font_size: Optional[int] = None
    color: Optional[str] = None
    font_family: Optional[str] = None
    font_weight: Optional[str] = None
    text_align: Optional[TextAlign] = None
    delay: Optional[int] = None
    duration: Optional[int] = None


@dataclass(frozen=True)
class NewNoteArgs:
    text: Optional[str] = None
    time: Optional[int] = None


@dataclass(frozen=True)
class SetNoteArgs:
    id: Optional[str] = None
    text: Optional[str] = None
    time: Optional[int] = None


@dataclass(frozen=True)
class ListNotesArgs:
    query: Optional[str] = None


@dataclass(frozen=True)
class ListCompArgs:
    interactive: Optional[bool] = None


@dataclass(frozen=True)
class NewPageArgs:
    num: Optional[int] = None
    copy: Optional[str] = None


@dataclass(frozen=True)
class SetPageArgs:
    target: Optional[str] = None
    id: Optional[str] = None
    new_id: Optional[str] = None
    name: Optional[str] = None
    duration: Optional[int] = None
    background_color: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None


@dataclass(frozen=True)
class DeletePageArgs:
    id: Optional[str] = None
    num: Optional[int] = None
    yes: Optional[bool] = None


@dataclass(frozen=True)
class SetCompArgs:
    title: Optional[str] = None
    fps: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class ZoomArgs:
    percentage: Optional[str] = None


@dataclass(frozen=True)
class NoArgs:
    pass
