"""Keyboard handling: view mode, search query and navigation."""

from enum import Enum

import structlog

from cputop.models import KeyEvent, ViewMode

log = structlog.get_logger(__name__)

QUIT_KEYS = frozenset({"escape", "q"})


class Action(Enum):
    """Outcome of a key event that the tick loop has to act on."""

    NONE = "none"
    QUIT = "quit"
    SELECT_NEXT = "select_next"
    SELECT_PREVIOUS = "select_previous"


class QueryBuffer:
    """Single-line text buffer with a cursor, edited key by key."""

    def __init__(self, text: str = "") -> None:
        """Initialize QueryBuffer with the cursor at the end of ``text``."""
        self._text = text
        self._cursor = len(text)

    @property
    def text(self) -> str:
        """Get the current text."""
        return self._text

    @property
    def cursor(self) -> int:
        """Get the cursor position (0 .. len(text))."""
        return self._cursor

    def input(self, key: KeyEvent) -> bool:
        """
        Apply an editing key.

        Returns:
            True if the key was recognised as an editing key.
        """
        if key.is_printable and key.plain:
            self.insert(key.code)
        elif key.code == "backspace" or key.is_ctrl("h"):
            self.delete_before()
        elif key.code == "delete" or key.is_ctrl("d"):
            self.delete_at()
        elif key.code == "left" or key.is_ctrl("b"):
            self._cursor = max(0, self._cursor - 1)
        elif key.code == "right" or key.is_ctrl("f"):
            self._cursor = min(len(self._text), self._cursor + 1)
        elif key.code == "home" or key.is_ctrl("a"):
            self._cursor = 0
        elif key.code == "end" or key.is_ctrl("e"):
            self._cursor = len(self._text)
        elif key.is_ctrl("k"):
            self._text = self._text[: self._cursor]
        elif key.is_ctrl("u"):
            self._text = self._text[self._cursor :]
            self._cursor = 0
        else:
            return False
        return True

    def insert(self, chars: str) -> None:
        """Insert ``chars`` at the cursor."""
        self._text = self._text[: self._cursor] + chars + self._text[self._cursor :]
        self._cursor += len(chars)

    def delete_before(self) -> None:
        """Delete the character left of the cursor."""
        if self._cursor > 0:
            self._text = self._text[: self._cursor - 1] + self._text[self._cursor :]
            self._cursor -= 1

    def delete_at(self) -> None:
        """Delete the character under the cursor."""
        self._text = self._text[: self._cursor] + self._text[self._cursor + 1 :]


class InputStateMachine:
    """
    Maps key events to state changes.

    Owns the view mode and the query. Quit keys are checked before anything
    else and are never typed. While searching, every other key goes to the
    query first; an "s" is typed and then also leaves search mode.
    """

    def __init__(self) -> None:
        """Initialize InputStateMachine in normal mode with an empty query."""
        self._mode = ViewMode.NORMAL
        self._query = QueryBuffer()

    @property
    def mode(self) -> ViewMode:
        """Get the current view mode."""
        return self._mode

    @property
    def query(self) -> str:
        """Get the current query text."""
        return self._query.text

    @property
    def cursor(self) -> int:
        """Get the query cursor position."""
        return self._query.cursor

    def handle(self, key: KeyEvent) -> Action:
        """Apply ``key`` and return what the tick loop must do about it."""
        if self._is_quit(key):
            return Action.QUIT

        if self._mode is ViewMode.SEARCH:
            self._query.input(key)

        # In search mode the "s" has already been typed; it also leaves search
        if key.code == "s" and not key.modifiers:
            self.toggle_mode()
            return Action.NONE

        if self._mode is ViewMode.SEARCH:
            return Action.NONE

        if not key.modifiers:
            if key.code == "j":
                return Action.SELECT_NEXT
            if key.code == "k":
                return Action.SELECT_PREVIOUS
        return Action.NONE

    def toggle_mode(self) -> None:
        """Switch between normal and search mode, keeping the query."""
        if self._mode is ViewMode.NORMAL:
            self._mode = ViewMode.SEARCH
        else:
            self._mode = ViewMode.NORMAL
        log.debug("view_mode_changed", mode=self._mode.value, query=self._query.text)

    @staticmethod
    def _is_quit(key: KeyEvent) -> bool:
        if key.code in QUIT_KEYS and not key.modifiers:
            return True
        return key.is_ctrl("c", "C")
