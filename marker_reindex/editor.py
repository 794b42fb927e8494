"""Editor capability interface and adapters.

The engine only talks to an `EditorAdapter`. Hosts whose editor objects expose
a different surface wrap them once with `adapt_editor`, which resolves the
available methods and attributes up front.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from .exceptions import EditorError
from .models import EditorState

logger = logging.getLogger(__name__)


@runtime_checkable
class EditorAdapter(Protocol):
    """Capabilities the reindexing engine needs from a text editor."""

    def get_content(self) -> str:
        """Return the full editor text."""
        ...

    def replace_content(self, text: str) -> bool:
        """Replace the full editor text.

        Returns:
            bool: Whether the editor accepted the new text.
        """
        ...

    def get_cursor_position(self) -> int:
        ...

    def set_cursor_position(self, position: int) -> None:
        ...

    def get_view_state(self) -> EditorState:
        """Return scroll offsets and focus, for cosmetic restore after a rollback."""
        ...

    def restore_view_state(self, state: EditorState) -> None:
        ...

    def set_reindexing_enabled(self, enabled: bool) -> None:
        """Turn automatic reindexing on or off for this editor."""
        ...


class TextBufferEditor:
    """In-memory editor holding a single text buffer.

    Used by the command-line interface and as the reference implementation of
    `EditorAdapter`.

    Args:
        content: Initial text.
        cursor_position: Initial cursor offset.

    Examples:
        editor = TextBufferEditor("See [1].")
        editor.replace_content("See [2].")
    """

    def __init__(self, content: str = "", cursor_position: int = 0):
        self.content = content
        self.cursor_position = cursor_position
        self.view_state = EditorState()
        self.reindexing_enabled = True

    def get_content(self) -> str:
        return self.content

    def replace_content(self, text: str) -> bool:
        if not isinstance(text, str):
            return False
        self.content = text
        self.cursor_position = min(self.cursor_position, len(text))
        return True

    def get_cursor_position(self) -> int:
        return self.cursor_position

    def set_cursor_position(self, position: int) -> None:
        self.cursor_position = max(0, min(position, len(self.content)))

    def get_view_state(self) -> EditorState:
        return self.view_state

    def restore_view_state(self, state: EditorState) -> None:
        self.view_state = state

    def set_reindexing_enabled(self, enabled: bool) -> None:
        self.reindexing_enabled = enabled

    def insert(self, position: int, text: str) -> None:
        """Insert `text` at `position` and move the cursor after it."""
        position = max(0, min(position, len(self.content)))
        self.content = self.content[:position] + text + self.content[position:]
        self.cursor_position = position + len(text)


_CONTENT_READERS = ("get_content", "get_text")
_CONTENT_ATTRIBUTES = ("content", "text")
_CONTENT_WRITERS = ("replace_content", "set_content", "set_text")
_CURSOR_READERS = ("get_cursor_position",)
_CURSOR_WRITERS = ("set_cursor_position",)
_CURSOR_ATTRIBUTES = ("cursor_position", "selection_start")


def _first_callable(target: object, names: tuple[str, ...]) -> str | None:
    for name in names:
        if callable(getattr(target, name, None)):
            return name
    return None


def _first_attribute(target: object, names: tuple[str, ...]) -> str | None:
    for name in names:
        if hasattr(target, name) and not callable(getattr(target, name)):
            return name
    return None


class DuckTypedEditor:
    """`EditorAdapter` over an arbitrary editor-like object.

    Capabilities are resolved once, at construction. Reading the content is
    required; every other capability degrades to a no-op or a default value
    when the wrapped object lacks it, except writing, which raises
    `EditorError` when attempted on a read-only target.

    Args:
        target: The host editor object.

    Raises:
        EditorError: If `target` offers no way to read its content.
    """

    def __init__(self, target: object):
        self.target = target
        self._reader = _first_callable(target, _CONTENT_READERS)
        self._content_attribute = _first_attribute(target, _CONTENT_ATTRIBUTES)
        if self._reader is None and self._content_attribute is None:
            raise EditorError("get_content", f"{type(target).__name__} exposes no readable content")

        self._writer = _first_callable(target, _CONTENT_WRITERS)
        self._cursor_reader = _first_callable(target, _CURSOR_READERS)
        self._cursor_writer = _first_callable(target, _CURSOR_WRITERS)
        self._cursor_attribute = _first_attribute(target, _CURSOR_ATTRIBUTES)
        logger.debug(
            "Adapted %s (read=%s, write=%s)",
            type(target).__name__,
            self._reader or self._content_attribute,
            self._writer or self._content_attribute,
        )

    def get_content(self) -> str:
        if self._reader is not None:
            content = getattr(self.target, self._reader)()
        else:
            content = getattr(self.target, self._content_attribute)
        if not isinstance(content, str):
            raise EditorError("get_content", f"expected text, got {type(content).__name__}")
        return content

    def replace_content(self, text: str) -> bool:
        if self._writer is not None:
            accepted = getattr(self.target, self._writer)(text)
            # Setters that return nothing are taken to have succeeded
            return accepted is None or bool(accepted)
        if self._content_attribute is not None:
            try:
                setattr(self.target, self._content_attribute, text)
            except AttributeError as error:
                raise EditorError("replace_content", str(error)) from error
            return True
        raise EditorError("replace_content", "editor is read-only")

    def get_cursor_position(self) -> int:
        if self._cursor_reader is not None:
            return int(getattr(self.target, self._cursor_reader)())
        if self._cursor_attribute is not None:
            return int(getattr(self.target, self._cursor_attribute))
        return 0

    def set_cursor_position(self, position: int) -> None:
        if self._cursor_writer is not None:
            getattr(self.target, self._cursor_writer)(position)
        elif self._cursor_attribute is not None:
            setattr(self.target, self._cursor_attribute, position)

    def get_view_state(self) -> EditorState:
        return EditorState(
            scroll_top=int(getattr(self.target, "scroll_top", 0) or 0),
            scroll_left=int(getattr(self.target, "scroll_left", 0) or 0),
            focused=bool(getattr(self.target, "focused", False)),
        )

    def restore_view_state(self, state: EditorState) -> None:
        for name in ("scroll_top", "scroll_left"):
            if hasattr(self.target, name):
                setattr(self.target, name, getattr(state, name))
        focus = getattr(self.target, "focus", None)
        if state.focused and callable(focus):
            focus()

    def set_reindexing_enabled(self, enabled: bool) -> None:
        name = "enable_reindexing" if enabled else "disable_reindexing"
        toggle = getattr(self.target, name, None)
        if callable(toggle):
            toggle()
        elif hasattr(self.target, "reindexing_enabled"):
            self.target.reindexing_enabled = enabled


def adapt_editor(target: Any) -> EditorAdapter:
    """Return `target` itself when it already is an `EditorAdapter`, else wrap it.

    Args:
        target: Host editor object.

    Returns:
        EditorAdapter: An adapter the engine can use.

    Raises:
        EditorError: If `target` offers no way to read its content.

    Examples:
        adapter = adapt_editor(widget)
        adapter.get_content()
    """
    if isinstance(target, EditorAdapter):
        return target
    return DuckTypedEditor(target)
