"""surfaces.py — Host-facing contracts for the two display surfaces and user prompts."""

from typing import Any, Protocol

READY_TEXT = "quietread: ready"
HIDDEN_TEXT = "quietread: \U0001F4D6"
MIN_OPACITY = 5
MAX_OPACITY = 100


class NarrowSurface(Protocol):
    """Always-visible single-line surface (a status line)."""

    def show(self, text: str, color: str | None = None) -> None:
        ...


class WidePanel(Protocol):
    """Dismissible panel rendering the whole chapter, with a message channel."""

    @property
    def is_alive(self) -> bool:
        ...

    def post_message(self, message: dict[str, Any]) -> None:
        ...

    def dispose(self) -> None:
        ...


class Host(Protocol):
    def prompt_open_file(self) -> str | None:
        ...

    def confirm(self, message: str, options: list[str]) -> str | None:
        ...

    def notify(self, level: str, message: str) -> None:
        ...

    def open_wide_panel(self) -> WidePanel | None:
        ...


def clamp_opacity(value: int) -> int:
    return max(MIN_OPACITY, min(MAX_OPACITY, int(value)))


def status_color(opacity: int) -> str:
    """Grey status text whose alpha follows the opacity percentage."""
    return f"rgba(135, 135, 135, {clamp_opacity(opacity) / 100:.2f})"


def format_status(title: str, marker: str, text: str, prefix: str = "quietread: ") -> str:
    indicator = f" [{marker}]" if marker else ""
    return f"{prefix}{title}{indicator} - {text}"


class ConsoleSurface:
    """Narrow surface that prints to stdout; keeps the last line shown."""

    def __init__(self, echo: bool = True):
        self.echo = echo
        self.last_text = ""
        self.last_color: str | None = None

    def show(self, text: str, color: str | None = None) -> None:
        self.last_text = text
        self.last_color = color
        if self.echo:
            print(text)


class ConsoleHost:
    """Non-interactive host used by the CLI: answers prompts from fixed choices."""

    def __init__(self, open_path: str | None = None, replace_existing: bool = False):
        self.open_path = open_path
        self.replace_existing = replace_existing

    def prompt_open_file(self) -> str | None:
        return self.open_path

    def confirm(self, message: str, options: list[str]) -> str | None:
        print(message)
        return options[0] if self.replace_existing and options else None

    def notify(self, level: str, message: str) -> None:
        tag = "" if level == "info" else f"{level.upper()}: "
        print(f"{tag}{message}")

    def open_wide_panel(self) -> WidePanel | None:
        return None
