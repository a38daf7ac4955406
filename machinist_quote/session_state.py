"""
Quote session state machine.

All session state lives in one immutable SessionState. Every user action or
provider result is an event, and transition() is the only place state
changes. Each issued request carries a monotonically increasing token; a
result is applied only if its token is still the session's current token,
so slow responses for superseded options or a previous file are dropped.

    IDLE            no file selected
    AWAITING_QUOTE  file selected, first quote in flight
    READY           quote shown, nothing in flight
    REFRESHING      quote shown, newer request in flight
    FAILED          last request errored; previous quote (if any) still shown
"""

import enum
from dataclasses import dataclass, field, replace
from typing import Optional, Union

from .schemas import CadFile, Quote, QuoteOptions


class Phase(str, enum.Enum):
    IDLE = "idle"
    AWAITING_QUOTE = "awaiting_quote"
    READY = "ready"
    REFRESHING = "refreshing"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionState:
    file: Optional[CadFile] = None
    options: QuoteOptions = field(default_factory=QuoteOptions)
    debounced_options: QuoteOptions = field(default_factory=QuoteOptions)
    quote: Optional[Quote] = None
    quote_options: Optional[QuoteOptions] = None  # snapshot the shown quote was priced with
    loading: bool = False
    error: Optional[str] = None
    token: int = 0  # last issued request token

    @property
    def phase(self) -> Phase:
        if self.file is None:
            return Phase.IDLE
        if self.loading:
            return Phase.REFRESHING if self.quote is not None else Phase.AWAITING_QUOTE
        if self.error:
            return Phase.FAILED
        if self.quote is not None:
            return Phase.READY
        return Phase.AWAITING_QUOTE


# --- Events ---

@dataclass(frozen=True)
class FileSelected:
    file: CadFile


@dataclass(frozen=True)
class FileCleared:
    pass


@dataclass(frozen=True)
class OptionsChanged:
    options: QuoteOptions


@dataclass(frozen=True)
class DebouncedOptionsSettled:
    options: QuoteOptions


@dataclass(frozen=True)
class RequestSucceeded:
    token: int
    quote: Quote
    options: QuoteOptions


@dataclass(frozen=True)
class RequestFailed:
    token: int
    message: str


Event = Union[FileSelected, FileCleared, OptionsChanged, DebouncedOptionsSettled,
              RequestSucceeded, RequestFailed]


@dataclass(frozen=True)
class QuoteRequest:
    """A provider call the orchestrator must issue."""
    token: int
    file: CadFile
    options: QuoteOptions
    previous_quote: Optional[Quote] = None
    previous_options: Optional[QuoteOptions] = None


@dataclass(frozen=True)
class Transition:
    state: SessionState
    request: Optional[QuoteRequest] = None


def transition(state: SessionState, event: Event) -> Transition:
    """Apply one event. Pure: returns the new state and any request to issue."""
    if isinstance(event, FileSelected):
        token = state.token + 1
        new_state = replace(
            state,
            file=event.file,
            debounced_options=state.options,
            quote=None,
            quote_options=None,
            loading=True,
            error=None,
            token=token,
        )
        # A new file is always priced from scratch
        return Transition(new_state, QuoteRequest(token, event.file, state.options))

    if isinstance(event, FileCleared):
        return Transition(replace(
            state,
            file=None,
            debounced_options=state.options,
            quote=None,
            quote_options=None,
            loading=False,
            error=None,
            token=state.token + 1,
        ))

    if isinstance(event, OptionsChanged):
        return Transition(replace(state, options=event.options))

    if isinstance(event, DebouncedOptionsSettled):
        unchanged = event.options == state.debounced_options
        new_state = replace(state, debounced_options=event.options)
        if state.file is None or unchanged:
            return Transition(new_state)
        token = state.token + 1
        new_state = replace(new_state, loading=True, error=None, token=token)
        return Transition(new_state, QuoteRequest(
            token,
            state.file,
            event.options,
            previous_quote=state.quote,
            previous_options=state.quote_options,
        ))

    if isinstance(event, RequestSucceeded):
        if not _is_current(state, event.token):
            return Transition(state)
        return Transition(replace(
            state,
            quote=event.quote,
            quote_options=event.options,
            loading=False,
            error=None,
        ))

    if isinstance(event, RequestFailed):
        if not _is_current(state, event.token):
            return Transition(state)
        # Last good quote stays on screen under the error banner
        return Transition(replace(state, loading=False, error=event.message))

    raise TypeError(f"Unknown session event: {event!r}")


def _is_current(state: SessionState, token: int) -> bool:
    return state.file is not None and token == state.token
