"""
Shared test fixtures: stub quote provider, quote factory, test client.
"""

import asyncio
import os
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

# Short debounce and no real Gemini key before importing app modules
os.environ["QUOTE_DEBOUNCE_MS"] = "50"
os.environ["GEMINI_API_KEY"] = ""

from machinist_quote.main import app
from machinist_quote.schemas import CadFile, Quote
from machinist_quote.sessions import get_provider, store


def make_quote(part_name="bracket.step", total=412.50, items=None, material="Aluminum 6061-T6",
               finish="As Machined", lead_time="10 Business Days") -> Quote:
    """Build a Quote the way Gemini returns it (camelCase JSON)."""
    if items is None:
        items = [
            {"item": "Setup Costs", "cost": 150.0},
            {"item": "Material Costs", "cost": 42.5},
            {"item": "Machining Costs", "cost": 180.0},
            {"item": "Finishing Costs", "cost": 40.0},
        ]
    return Quote.model_validate({
        "partName": part_name,
        "material": material,
        "manufacturingProcess": "3-Axis CNC Milling",
        "finish": finish,
        "costBreakdown": items,
        "totalCost": total,
        "leadTime": lead_time,
        "assumptions": ["Part fits within a 15cm x 10cm x 5cm bounding box"],
    })


class StubProvider:
    """
    Stand-in for GeminiQuoteProvider.

    results[i] is returned (or raised, if an exception) by the i-th call;
    delays[i] is how long the i-th call takes. Calls past the end of
    results get `default`.
    """

    def __init__(self, results=None, delays=None, default=None):
        self.results = list(results or [])
        self.delays = list(delays or [])
        self.default = default or make_quote()
        self.calls = []

    async def request_quote(self, file, options, previous_quote=None, previous_options=None):
        index = len(self.calls)
        self.calls.append(SimpleNamespace(
            file=file,
            options=options,
            previous_quote=previous_quote,
            previous_options=previous_options,
        ))
        delay = self.delays[index] if index < len(self.delays) else 0
        if delay:
            await asyncio.sleep(delay)
        result = self.results[index] if index < len(self.results) else self.default
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def cad_file():
    return CadFile(name="bracket.step", size=48_213, content_type="application/step")


@pytest.fixture
def stub_provider():
    return StubProvider()


@pytest.fixture
def client(stub_provider):
    """FastAPI test client whose sessions talk to the stub provider."""
    app.dependency_overrides[get_provider] = lambda: stub_provider
    # Context manager keeps one event loop alive for debounce timers and quote tasks
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_provider, None)
    store.close_all()


@pytest.fixture
def quote_factory():
    return make_quote


@pytest.fixture
def provider_factory():
    return StubProvider
