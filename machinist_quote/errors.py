"""
Quote provider failures.

Every failure shows the user the same banner text; the subclasses exist for
logging and tests. The detail passed to the constructor is the technical
reason and is never shown in the UI.
"""

FAILURE_MESSAGE = "Failed to generate quote. The AI model may be temporarily unavailable."


class ProviderError(Exception):
    """Base class: the provider did not produce a complete Quote."""

    user_message = FAILURE_MESSAGE

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail


class TransportError(ProviderError):
    """The call to Gemini failed (no key, HTTP error, network, timeout)."""


class FormatError(ProviderError):
    """Gemini answered, but not with a JSON object shaped like a Quote."""


class UnknownError(ProviderError):
    """Anything else raised while a quote was being requested."""
