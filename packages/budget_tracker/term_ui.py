"""Interactive terminal prompts for the CLI, built on prompt_toolkit.

Kept apart from the engine so they can be driven in tests through a pipe
input and a dummy output.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .models import Account


def _session_like(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    # Reuse the caller's input/output (tests pass a pipe + DummyOutput).
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


# ----------------------------------------------------------------------------
# Category selector
# ----------------------------------------------------------------------------


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        lower = text.lower()
        if any(w.lower() == lower for w in self._vocab):
            return None
        for w in self._vocab:
            if w.lower().startswith(lower):
                return Suggestion(w[len(text) :]) if len(w) > len(text) else None
        return None


def select_category(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str,
    message: str = "Category (Enter to accept): ",
    session: PromptSession | None = None,
) -> str:
    """Prompt for a category, pre-filled with ``default``.

    Known categories complete by prefix (Tab or Enter) or from the dropdown
    (Down/Tab on an empty buffer). Any other non-empty text is returned as a
    new category name. An empty answer returns ``default``.
    """

    words = list(dict.fromkeys(categories))
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=False)

    kb = KeyBindings()
    menu_index = 0
    menu_opened = False
    # The first printable keystroke replaces a pre-filled default.
    replace_mode = bool(default)

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        for w in words:
            wl = w.lower()
            if wl == lower:
                return None
            if wl.startswith(lower):
                return w
        return None

    def _open_or_advance(b) -> None:
        nonlocal menu_opened, menu_index
        if b.complete_state is None:
            b.start_completion(select_first=True)
            menu_index = 0
        else:
            b.complete_next()
            menu_index += 1
        menu_opened = True

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        nonlocal replace_mode
        replace_mode = False
        _open_or_advance(event.app.current_buffer)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        b = event.app.current_buffer
        cand = _best_prefix_match(b.document.text)
        if cand:
            b.insert_text(cand[len(b.document.text) :])
        else:
            _open_or_advance(b)

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _best_prefix_match(b.document.text)
            if cand:
                b.insert_text(cand[len(b.document.text) :])
            elif menu_opened and not b.document.text and words:
                b.insert_text(words[max(0, min(menu_index, len(words) - 1))])
        b.validate_and_handle()

    @kb.add("backspace", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        event.app.current_buffer.delete_before_cursor(1)
        replace_mode = False

    @kb.add("left", eager=True)
    @kb.add("c-a", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        b = event.app.current_buffer
        if event.key_sequence[0].key == "left":
            b.cursor_left(1)
        else:
            b.cursor_position = 0

    @kb.add(Keys.Any, filter=Condition(lambda: replace_mode), eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        data = getattr(event, "data", "") or ""
        if not data or not data.isprintable():
            return
        b = event.app.current_buffer
        if data != " ":
            b.delete_before_cursor(len(b.document.text_before_cursor))
            b.delete(len(b.document.text_after_cursor))
        b.insert_text(data)
        replace_mode = False

    prompt_kwargs: dict[str, Any] = {
        "message": message,
        "completer": completer,
        "default": default or "",
        "key_bindings": kb,
        "auto_suggest": _PrefixSuggest(words),
        "style": Style.from_dict({"auto-suggestion": "fg:#888888"}),
    }
    result = _session_like(session, kb).prompt(**prompt_kwargs).strip()
    if not result:
        return default
    # Normalize case to a known category when the text matches one.
    return {w.lower(): w for w in words}.get(result.lower(), result)


# ----------------------------------------------------------------------------
# Yes/no confirmation
# ----------------------------------------------------------------------------

_YES = {"y", "yes"}
_NO = {"n", "no"}


class _YesNoValidator(Validator):
    def validate(self, document) -> None:
        if document.text.strip().lower() not in _YES | _NO:
            raise ValidationError(message="Answer y or n.")


def confirm_account_deletion(account: Account, *, session: PromptSession | None = None) -> bool:
    """Ask before deleting ``account`` and its data. Esc or Ctrl+C declines."""

    kb = KeyBindings()

    @kb.add("escape")
    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result="n")

    answer = _session_like(session, kb).prompt(
        f"Delete account '{account.name}' and all its data? [y/N]: ",
        default="n",
        validator=_YesNoValidator(),
        validate_while_typing=False,
        key_bindings=kb,
    )
    return (answer or "").strip().lower() in _YES


__all__ = ["select_category", "confirm_account_deletion"]
