"""
Quote request orchestrator: one QuoteSession per browser tab.

Routes user actions and provider results through transition(), starts a
provider task whenever a transition asks for a request, and never lets a
provider failure escape: errors land in the session's error slot.
"""

import asyncio
import logging
from typing import Optional, Set

from .config import settings
from .debounce import Debouncer
from .errors import ProviderError, UnknownError
from .schemas import CadFile, QuoteOptions
from .session_state import (
    DebouncedOptionsSettled,
    Event,
    FileCleared,
    FileSelected,
    OptionsChanged,
    QuoteRequest,
    RequestFailed,
    RequestSucceeded,
    SessionState,
    transition,
)
from .views import render_session

logger = logging.getLogger(__name__)


class QuoteSession:
    """
    Usage (inside a running event loop):
        session = QuoteSession(GeminiQuoteProvider())
        session.select_file(cad_file)          # requests immediately
        session.change_options(new_options)    # requests once the edit settles
        await session.wait_idle()
        session.state.quote
        session.close()

    The provider is any object with an async
    request_quote(file, options, previous_quote=None, previous_options=None).
    """

    def __init__(self, provider, debounce_seconds: Optional[float] = None,
                 session_id: str = ""):
        if debounce_seconds is None:
            debounce_seconds = settings.QUOTE_DEBOUNCE_MS / 1000
        self.session_id = session_id
        self.provider = provider
        self.state = SessionState()
        self._debouncer = Debouncer(debounce_seconds, self._on_options_settled)
        self._tasks: Set[asyncio.Task] = set()
        self.requests_issued = 0

    # --- User actions ---

    def select_file(self, file: CadFile) -> None:
        """New file: drop any pending edit and price it from scratch."""
        self._debouncer.cancel()
        self.dispatch(FileSelected(file))

    def clear_file(self) -> None:
        self._debouncer.cancel()
        self.dispatch(FileCleared())

    def change_options(self, options: QuoteOptions) -> None:
        """Record the edit now; the request waits for the debounce to settle."""
        self.dispatch(OptionsChanged(options))
        self._debouncer.push(options)

    # --- Core ---

    def dispatch(self, event: Event) -> SessionState:
        result = transition(self.state, event)
        self.state = result.state
        if result.request is not None:
            self._issue(result.request)
        return self.state

    def view(self) -> dict:
        return render_session(self.state, self.session_id)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait for pending edits to settle and every outstanding request to finish."""
        while self._debouncer.pending or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(self._debouncer.delay / 2 or 0.001)

    def close(self) -> None:
        """Teardown: cancel the debounce timer and any outstanding requests."""
        self._debouncer.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        logger.info("Quote session %s closed", self.session_id)

    def _on_options_settled(self, options: QuoteOptions) -> None:
        self.dispatch(DebouncedOptionsSettled(options))

    def _issue(self, request: QuoteRequest) -> None:
        self.requests_issued += 1
        logger.info(
            "Session %s: requesting quote #%d for %s (qty %d, %s, %s, %s)%s",
            self.session_id, request.token, request.file.name, request.options.quantity,
            request.options.material, request.options.finish, request.options.lead_time,
            " with previous quote" if request.previous_quote is not None else "",
        )
        task = asyncio.get_running_loop().create_task(self._run_request(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_request(self, request: QuoteRequest) -> None:
        try:
            quote = await self.provider.request_quote(
                request.file,
                request.options,
                previous_quote=request.previous_quote,
                previous_options=request.previous_options,
            )
        except asyncio.CancelledError:
            raise
        except ProviderError as e:
            logger.warning("Session %s: quote #%d failed: %s", self.session_id, request.token, e)
            self._complete(RequestFailed(request.token, e.user_message))
            return
        except Exception as e:
            err = UnknownError(str(e))
            logger.exception("Session %s: quote #%d failed unexpectedly", self.session_id, request.token)
            self._complete(RequestFailed(request.token, err.user_message))
            return
        self._complete(RequestSucceeded(request.token, quote, request.options))

    def _complete(self, event) -> None:
        if event.token != self.state.token or self.state.file is None:
            logger.debug("Session %s: dropping superseded result #%d (current #%d)",
                         self.session_id, event.token, self.state.token)
        self.dispatch(event)
