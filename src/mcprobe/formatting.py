"""Parse and render Minecraft formatted text (MOTDs and chat components).

Both input shapes, legacy ``§``-coded strings and JSON chat components, are
decoded into the same flat sequence of :class:`FormatRun` spans. Renderers
turn a run sequence back into legacy-coded text, plain text, HTML, or ANSI
terminal output.
"""

from __future__ import annotations

import html
import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from mcprobe.errors import MalformedFieldError

FORMAT_CHAR = "§"
DEFAULT_COLOR = "white"

# Matches: §x§R§R§G§G§B§B (RGB), §X (single char code), or a dangling §
_MC_FORMAT_PATTERN = re.compile(r"§[xX](?:§[0-9A-Fa-f]){6}|§.?", re.DOTALL)
_HEX_COLOR_PATTERN = re.compile(r"#[0-9A-Fa-f]{6}")

_ANSI_RESET = "\033[0m"

COLOR_CODES: dict[str, str] = {
    "0": "black",
    "1": "dark_blue",
    "2": "dark_green",
    "3": "dark_aqua",
    "4": "dark_red",
    "5": "dark_purple",
    "6": "gold",
    "7": "gray",
    "8": "dark_gray",
    "9": "blue",
    "a": "green",
    "b": "aqua",
    "c": "red",
    "d": "light_purple",
    "e": "yellow",
    "f": "white",
    "g": "minecoin_gold",  # Bedrock only
}
COLOR_NAMES: dict[str, str] = {name: code for code, name in COLOR_CODES.items()}

COLOR_HEX: dict[str, str] = {
    "black": "#000000",
    "dark_blue": "#0000AA",
    "dark_green": "#00AA00",
    "dark_aqua": "#00AAAA",
    "dark_red": "#AA0000",
    "dark_purple": "#AA00AA",
    "gold": "#FFAA00",
    "gray": "#AAAAAA",
    "dark_gray": "#555555",
    "blue": "#5555FF",
    "green": "#55FF55",
    "aqua": "#55FFFF",
    "red": "#FF5555",
    "light_purple": "#FF55FF",
    "yellow": "#FFFF55",
    "white": "#FFFFFF",
    "minecoin_gold": "#DDD605",
}

# Order matters: this is the order flags are re-emitted in.
_STYLE_CODES: dict[str, str] = {
    "k": "obfuscated",
    "l": "bold",
    "m": "strikethrough",
    "n": "underline",
    "o": "italic",
}

_MC_TO_ANSI: dict[str, str] = {
    "black": "\033[30m",
    "dark_blue": "\033[34m",
    "dark_green": "\033[32m",
    "dark_aqua": "\033[36m",
    "dark_red": "\033[31m",
    "dark_purple": "\033[35m",
    "gold": "\033[33m",
    "gray": "\033[37m",
    "dark_gray": "\033[90m",
    "blue": "\033[94m",
    "green": "\033[92m",
    "aqua": "\033[96m",
    "red": "\033[91m",
    "light_purple": "\033[95m",
    "yellow": "\033[93m",
    "minecoin_gold": "\033[38;2;221;214;5m",
    "bold": "\033[1m",
    "italic": "\033[3m",
    "underline": "\033[4m",
    "strikethrough": "\033[9m",
}

OBFUSCATED_CSS_CLASS = "minecraft-format-obfuscated"


@dataclass(frozen=True)
class FormatRun:
    """A span of text sharing one color and one set of style flags."""

    text: str = ""
    color: str = DEFAULT_COLOR
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False
    obfuscated: bool = False

    def style(self) -> FormatRun:
        """This run's formatting with the text removed."""
        return replace(self, text="")

    @property
    def is_plain(self) -> bool:
        """True when the run carries no formatting at all."""
        return self.style() == _PLAIN


_PLAIN = FormatRun()


class _LegacyDecoder:
    """Accumulates runs while walking a legacy-coded string."""

    def __init__(self, base: FormatRun) -> None:
        self.runs: list[FormatRun] = []
        self.style = base.style()
        self._chunks: list[str] = []

    def switch(self, style: FormatRun) -> None:
        if style == self.style:
            return
        if any(self._chunks):
            self.runs.append(replace(self.style, text="".join(self._chunks)))
            self._chunks.clear()
        self.style = style

    def apply(self, code: str) -> None:
        if len(code) < 2:
            return

        char = code[1].lower()
        if char == "x" and len(code) > 2:
            self.switch(FormatRun(color="#" + code[3::2].upper()))
        elif char in COLOR_CODES:
            self.switch(FormatRun(color=COLOR_CODES[char]))
        elif char in _STYLE_CODES:
            self.switch(replace(self.style, **{_STYLE_CODES[char]: True}))
        elif char == "r":
            self.switch(FormatRun())

    def feed(self, text: str) -> None:
        self._chunks.append(text)

    def finish(self) -> list[FormatRun]:
        self.runs.append(replace(self.style, text="".join(self._chunks)))
        return self.runs


def parse_legacy(text: str, base: FormatRun | None = None) -> list[FormatRun]:
    """Decode a ``§``-coded string into runs.

    Color codes reset every style flag, format codes add a flag to the
    current style, and ``§r`` returns to the default style. A run is only
    closed when the style actually changes, so repeated codes without text
    in between never produce empty runs. The last run is always returned,
    even when empty.

    Args:
        text: The raw string.
        base: Style to start from (used for chat component text).

    Returns:
        The decoded runs, never empty.
    """
    decoder = _LegacyDecoder(base or _PLAIN)
    pos = 0
    for match in _MC_FORMAT_PATTERN.finditer(text):
        decoder.feed(text[pos : match.start()])
        decoder.apply(match.group(0))
        pos = match.end()
    decoder.feed(text[pos:])
    return decoder.finish()


def _parse_flag(value: Any) -> bool | None:
    """Accept native booleans and the ``"true"``/``"false"`` strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def _parse_color(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered == "reset":
        return DEFAULT_COLOR
    if lowered in COLOR_NAMES:
        return lowered
    if _HEX_COLOR_PATTERN.fullmatch(lowered):
        return lowered.upper()
    # Unknown names fall back to the inherited color.
    return None


@dataclass(frozen=True)
class ChatNode:
    """One node of a JSON chat component tree.

    ``None`` style fields inherit from the parent node.
    """

    text: str = ""
    color: str | None = None
    bold: bool | None = None
    italic: bool | None = None
    underlined: bool | None = None
    strikethrough: bool | None = None
    obfuscated: bool | None = None
    extra: tuple[ChatNode, ...] = field(default_factory=tuple)

    @classmethod
    def from_json(cls, data: Any) -> ChatNode:
        """Build a node from decoded JSON.

        Accepts an object, a bare string, or a list of components (the first
        element is the parent of the rest).
        """
        if data is None:
            return cls()
        if isinstance(data, str):
            return cls(text=data)
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return cls(text=str(data))
        if isinstance(data, list):
            if not data:
                return cls()
            head = cls.from_json(data[0])
            tail = tuple(cls.from_json(item) for item in data[1:])
            return replace(head, extra=head.extra + tail)
        if not isinstance(data, dict):
            msg = f"Unsupported chat component: {data!r}"
            raise MalformedFieldError(msg)

        extra = data.get("extra") or []
        if not isinstance(extra, list):
            extra = [extra]

        underlined = data.get("underlined")
        if underlined is None:
            underlined = data.get("underline")

        text = data.get("text", "")
        return cls(
            text=text if isinstance(text, str) else str(text),
            color=_parse_color(data.get("color")),
            bold=_parse_flag(data.get("bold")),
            italic=_parse_flag(data.get("italic")),
            underlined=_parse_flag(underlined),
            strikethrough=_parse_flag(data.get("strikethrough")),
            obfuscated=_parse_flag(data.get("obfuscated")),
            extra=tuple(cls.from_json(child) for child in extra),
        )

    def resolve_style(self, parent: FormatRun) -> FormatRun:
        """Apply this node's explicit fields on top of the parent style."""

        def pick(own: bool | None, inherited: bool) -> bool:
            return inherited if own is None else own

        return FormatRun(
            color=self.color or parent.color,
            bold=pick(self.bold, parent.bold),
            italic=pick(self.italic, parent.italic),
            underline=pick(self.underlined, parent.underline),
            strikethrough=pick(self.strikethrough, parent.strikethrough),
            obfuscated=pick(self.obfuscated, parent.obfuscated),
        )

    def runs(self, parent: FormatRun | None = None) -> list[FormatRun]:
        """Flatten the tree: own text first, then children in order."""
        style = self.resolve_style(parent or _PLAIN)
        result = [run for run in parse_legacy(self.text, style) if run.text]
        for child in self.extra:
            result.extend(child.runs(style))
        return result


@dataclass(frozen=True)
class LegacyText:
    """A description sent as a plain (possibly ``§``-coded) string."""

    text: str

    def runs(self) -> list[FormatRun]:
        return parse_legacy(self.text)


@dataclass(frozen=True)
class ChatComponent:
    """A description sent as a JSON chat component tree."""

    node: ChatNode

    def runs(self) -> list[FormatRun]:
        return self.node.runs() or [FormatRun()]


Description = LegacyText | ChatComponent


def parse_description(raw: Any) -> Description:
    """Classify a decoded ``description`` value once, at the JSON boundary."""
    if raw is None:
        return LegacyText("")
    if isinstance(raw, str):
        return LegacyText(raw)
    return ChatComponent(ChatNode.from_json(raw))


def _legacy_color(color: str) -> str:
    if color in COLOR_NAMES:
        return FORMAT_CHAR + COLOR_NAMES[color]
    if _HEX_COLOR_PATTERN.fullmatch(color):
        return FORMAT_CHAR + "x" + "".join(FORMAT_CHAR + c for c in color[1:])
    return ""


def to_legacy(runs: Iterable[FormatRun]) -> str:
    """Re-encode runs as ``§<color><flags><text>``.

    The color is omitted for the default (white). A ``§r`` precedes a
    default-colored run that follows a formatted one, so the result decodes
    back into the same runs.
    """
    parts: list[str] = []
    previous_plain = True
    for run in runs:
        codes = "" if run.color == DEFAULT_COLOR else _legacy_color(run.color)
        if not codes and not previous_plain:
            codes = FORMAT_CHAR + "r"
        flags = "".join(
            FORMAT_CHAR + code
            for code, attr in _STYLE_CODES.items()
            if getattr(run, attr)
        )
        parts.append(codes + flags + run.text)
        previous_plain = run.is_plain
    return "".join(parts)


def to_plain(runs: Iterable[FormatRun]) -> str:
    """Concatenate the text of every run."""
    return "".join(run.text for run in runs)


def _css_color(color: str) -> str:
    return COLOR_HEX.get(color, color)


def to_html(runs: Iterable[FormatRun]) -> str:
    """Render runs as one ``<span>`` per run with inline CSS.

    Obfuscated text only gets a CSS class; animating it is up to the page.
    """
    parts: list[str] = []
    for run in runs:
        if not run.text:
            continue

        styles = [f"color: {_css_color(run.color)}"]
        if run.bold:
            styles.append("font-weight: bold")
        if run.italic:
            styles.append("font-style: italic")
        decorations = []
        if run.underline:
            decorations.append("underline")
        if run.strikethrough:
            decorations.append("line-through")
        if decorations:
            styles.append("text-decoration: " + " ".join(decorations))

        class_attr = f' class="{OBFUSCATED_CSS_CLASS}"' if run.obfuscated else ""
        text = html.escape(run.text).replace("\n", "<br />")
        parts.append(f'<span{class_attr} style="{"; ".join(styles)};">{text}</span>')
    return "".join(parts)


def _ansi_codes(run: FormatRun) -> str:
    codes = []
    if _HEX_COLOR_PATTERN.fullmatch(run.color):
        r, g, b = (int(run.color[i : i + 2], 16) for i in (1, 3, 5))
        codes.append(f"\033[38;2;{r};{g};{b}m")
    elif run.color in _MC_TO_ANSI:
        codes.append(_MC_TO_ANSI[run.color])
    # Obfuscated has no terminal equivalent.
    codes.extend(
        _MC_TO_ANSI[attr]
        for attr in ("bold", "strikethrough", "underline", "italic")
        if getattr(run, attr)
    )
    return "".join(codes)


def to_ansi(runs: Iterable[FormatRun]) -> str:
    """Render runs with ANSI escape sequences for terminal display.

    A reset is emitted between a formatted run and the next one and once
    at the end, leaving the terminal state clean.
    """
    parts: list[str] = []
    dirty = False
    for run in runs:
        if dirty:
            parts.append(_ANSI_RESET)
        codes = _ansi_codes(run)
        parts.append(codes + run.text)
        dirty = bool(codes)
    if dirty:
        parts.append(_ANSI_RESET)
    return "".join(parts)


@dataclass(frozen=True)
class Motd:
    """A decoded message of the day."""

    runs: tuple[FormatRun, ...] = (FormatRun(),)

    @classmethod
    def parse(cls, raw: Any) -> Motd:
        """Decode either a string or a JSON chat component."""
        return cls(tuple(parse_description(raw).runs()))

    def to_plain(self) -> str:
        return to_plain(self.runs)

    def to_legacy(self) -> str:
        return to_legacy(self.runs)

    def to_html(self) -> str:
        return to_html(self.runs)

    def to_ansi(self) -> str:
        return to_ansi(self.runs)

    def __str__(self) -> str:
        return self.to_plain()


def strip_formatting(text: str) -> str:
    """Remove all Minecraft formatting codes from text.

    Args:
        text: Raw text from the Minecraft server.

    Returns:
        Clean text with all formatting codes removed.
    """
    return _MC_FORMAT_PATTERN.sub("", text)


def convert_formatting(text: str) -> str:
    """Convert Minecraft formatting codes to ANSI escape sequences."""
    return to_ansi(parse_legacy(text))


def format_response(text: str, *, color: bool = True) -> str:
    """Format server output for terminal display.

    Args:
        text: Raw text from the Minecraft server.
        color: If True, convert formatting codes to ANSI sequences.
            If False, strip all formatting codes.

    Returns:
        Formatted text ready for printing.
    """
    if color:
        return convert_formatting(text)
    return strip_formatting(text)
