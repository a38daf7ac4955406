"""
Gemini quote provider: turns a CAD file + options into a structured Quote.

The model never sees the geometry, only the file metadata and the requested
options. When a previous quote exists it is sent back as context so the
model re-prices only what changed instead of estimating from scratch.

One attempt per call. Either a fully validated Quote comes back or a
ProviderError is raised; nothing partial is ever returned.
"""

import asyncio
import json
import logging
import re
import urllib.error
import urllib.request
from typing import List, Optional

from pydantic import ValidationError

from .config import settings
from .errors import FormatError, TransportError
from .schemas import CadFile, Quote, QuoteOptions

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/%s:generateContent?key=%s"

# Gemini structured-output schema: every Quote field is required
RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "partName": {"type": "STRING"},
        "material": {"type": "STRING"},
        "manufacturingProcess": {"type": "STRING"},
        "finish": {"type": "STRING"},
        "costBreakdown": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "item": {"type": "STRING"},
                    "cost": {"type": "NUMBER"},
                },
                "required": ["item", "cost"],
            },
        },
        "totalCost": {"type": "NUMBER"},
        "leadTime": {"type": "STRING"},
        "assumptions": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
        },
    },
    "required": [
        "partName",
        "material",
        "manufacturingProcess",
        "finish",
        "costBreakdown",
        "totalCost",
        "leadTime",
        "assumptions",
    ],
}

_OPTION_LABELS = (
    ("quantity", "Quantity"),
    ("material", "Material"),
    ("finish", "Finish"),
    ("lead_time", "Desired Lead Time"),
)


class GeminiQuoteProvider:
    """
    Requests manufacturing quotes from Gemini.

    Usage:
        provider = GeminiQuoteProvider()
        quote = await provider.request_quote(cad_file, options)
        quote = await provider.request_quote(cad_file, new_options, previous_quote=quote,
                                             previous_options=options)
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 temperature: Optional[float] = None, timeout: Optional[float] = None):
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or settings.GEMINI_MODEL
        self.temperature = settings.GEMINI_TEMPERATURE if temperature is None else temperature
        self.timeout = timeout or settings.GEMINI_TIMEOUT_SECONDS

    async def request_quote(self, file: CadFile, options: QuoteOptions,
                            previous_quote: Optional[Quote] = None,
                            previous_options: Optional[QuoteOptions] = None) -> Quote:
        """
        Ask Gemini for a quote. Raises TransportError or FormatError.

        The HTTP call is blocking, so it runs in a worker thread and the
        event loop stays free for further edits while it is outstanding.
        """
        prompt = self.build_prompt(file, options, previous_quote, previous_options)
        response_text = await asyncio.to_thread(self._call_gemini, prompt)
        return self._parse_response(response_text)

    def build_prompt(self, file: CadFile, options: QuoteOptions,
                     previous_quote: Optional[Quote] = None,
                     previous_options: Optional[QuoteOptions] = None) -> str:
        if previous_quote is not None:
            return self._build_update_prompt(options, previous_quote, previous_options)
        return self._build_initial_prompt(file, options)

    def _build_initial_prompt(self, file: CadFile, options: QuoteOptions) -> str:
        return f"""You are an expert CNC machinist and advanced manufacturing cost estimator.
A customer uploaded a CAD file and asked for a quote with these requirements:
- File Name: {file.name}
- File Size: {file.size_kb:.2f} KB
- File Type: {file.content_type or 'unknown'}
{_format_options(options)}

Generate a detailed manufacturing quote for this part.
You cannot see the geometry. Assume a moderately complex part that fits within a
15cm x 10cm x 5cm bounding box.

PRICING RULES:
- Higher quantities lower the per-unit cost because setup is amortized
- Exotic materials (Titanium, PEEK) cost more than common ones (Aluminum, ABS)
- Finishes such as anodizing add cost over an 'As Machined' finish
- Shorter lead times incur expedite fees

Include setup costs, material costs, machining time costs and a finishing cost.
The 'leadTime' you return is what is achievable for this request and may differ
from the desired lead time.

Return ONLY a valid JSON object that strictly follows the provided schema."""

    def _build_update_prompt(self, options: QuoteOptions, previous_quote: Quote,
                             previous_options: Optional[QuoteOptions]) -> str:
        previous_json = json.dumps(previous_quote.model_dump(by_alias=True), indent=2)
        if previous_options is None:
            changes_text = "- (not recorded, compare against the previous quote)"
        else:
            changes_text = "\n".join(_describe_changes(previous_options, options)) or "- (none)"
        return f"""You are an expert CNC machinist and cost estimator.
A customer is updating the manufacturing quote for a part named "{previous_quote.part_name}".

PREVIOUS QUOTE:
{previous_json}

NEW REQUIREMENTS:
{_format_options(options)}

CHANGES SINCE THE PREVIOUS QUOTE:
{changes_text}

Re-price ONLY what the changes affect. The part geometry and complexity are unchanged.
- A quantity change amortizes 'Setup Costs' differently and scales 'Material Costs'
- A material change affects 'Material Costs' and possibly 'Machining Costs'
- A finish change affects 'Finishing Costs'
- A shorter lead time adds or increases an 'Expedite Fee'

Return ONLY a valid JSON object that strictly follows the provided schema."""

    def _call_gemini(self, prompt: str) -> str:
        """Call Gemini API and return the candidate text. Raises TransportError."""
        if not self.api_key:
            raise TransportError("GEMINI_API_KEY not configured")

        url = GEMINI_URL % (self.model, self.api_key)

        payload = json.dumps({
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }).encode("utf-8")

        req = urllib.request.Request(
            url,
            data=payload,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                result = json.loads(response.read())
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8", errors="replace")
            raise TransportError(f"Gemini API error {e.code}: {error_body}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise TransportError(f"Gemini call failed: {e}") from e
        except json.JSONDecodeError as e:
            raise TransportError(f"Gemini returned a malformed envelope: {e}") from e

        try:
            return result["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise TransportError(f"Gemini response has no candidate text: {e}") from e

    def _parse_response(self, response_text: str) -> Quote:
        """Parse and validate Gemini's JSON into a Quote. Raises FormatError."""
        text = (response_text or "").strip()
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Model sometimes wraps the object in a markdown code block
            match = re.search(r"\{[\s\S]*\}", text)
            if not match:
                logger.warning("Could not find a JSON object in AI quote response")
                raise FormatError("Could not find a JSON object in AI response")
            try:
                data = json.loads(match.group())
            except json.JSONDecodeError as e:
                raise FormatError(f"Failed to parse extracted JSON from AI response: {e}") from e

        if not isinstance(data, dict):
            logger.warning("AI quote response is a %s, not an object", type(data).__name__)
            raise FormatError("AI response is not a JSON object")
        if not data.get("partName") or not isinstance(data.get("costBreakdown"), list):
            raise FormatError("AI response is not in the expected format")

        try:
            return Quote.model_validate(data)
        except ValidationError as e:
            raise FormatError(f"AI response failed quote validation: {e}") from e


def _format_options(options: QuoteOptions) -> str:
    return "\n".join(
        f"- {label}: {getattr(options, field)}" for field, label in _OPTION_LABELS
    )


def _describe_changes(previous: QuoteOptions, current: QuoteOptions) -> List[str]:
    """List "- Label: old → new" for every option that differs."""
    changes = []
    for field, label in _OPTION_LABELS:
        old, new = getattr(previous, field), getattr(current, field)
        if old != new:
            changes.append(f"- {label}: {old} → {new}")
    return changes
