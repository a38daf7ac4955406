"""
Session view: everything the browser needs to draw the quote page.

The loading view policy lives here: a full-page loader only while the first
quote for a file is pending, an overlay on top of the existing quote while it
is being refreshed, so the page never goes blank once a quote has been shown.
"""

from typing import Optional

from .schemas import Quote
from .session_state import Phase, SessionState

DISCLAIMER = (
    "This is an AI-generated estimate. Prices are indicative and subject "
    "to change upon detailed design review."
)

LOADING_MESSAGES = {
    "full": "Our AI is analyzing your file and preparing a detailed quote. This may take a moment.",
    "overlay": "Updating quote with new options...",
}


def format_currency(amount) -> str:
    """Format a number as $X,XXX.XX"""
    try:
        amount = float(amount)
    except (ValueError, TypeError):
        return "$0.00"
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"


def loading_view(phase: Phase) -> Optional[str]:
    """'full', 'overlay' or None for the given phase."""
    if phase == Phase.AWAITING_QUOTE:
        return "full"
    if phase == Phase.REFRESHING:
        return "overlay"
    return None


def render_quote(quote: Quote) -> dict:
    data = quote.model_dump(by_alias=True)
    data["costBreakdown"] = [
        {**item, "display": format_currency(item["cost"])}
        for item in data["costBreakdown"]
    ]
    data["totalDisplay"] = format_currency(quote.total_cost)
    data["disclaimer"] = DISCLAIMER
    return data


def render_session(state: SessionState, session_id: str = "") -> dict:
    phase = state.phase
    view = loading_view(phase)
    return {
        "session_id": session_id,
        "phase": phase.value,
        "loading": state.loading,
        "loading_view": view,
        "loading_message": LOADING_MESSAGES.get(view) if view else None,
        "error": state.error,
        "file": state.file.model_dump() if state.file else None,
        "options": state.options.model_dump(by_alias=True),
        # Upload stays enabled while refreshing; only the first load locks it
        "upload_disabled": phase == Phase.AWAITING_QUOTE,
        "quote": render_quote(state.quote) if state.quote else None,
    }
