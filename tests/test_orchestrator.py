"""
Quote request orchestrator tests: QuoteSession driven on a real event loop
with a stub provider and a short debounce.

Covers the debounced re-quote flow, supersession of slow responses, file
clearing mid-flight, failure handling and the loading view policy.
"""

import asyncio

from machinist_quote.errors import FAILURE_MESSAGE, FormatError, TransportError
from machinist_quote.orchestrator import QuoteSession
from machinist_quote.schemas import CadFile, QuoteOptions
from machinist_quote.session_state import Phase
from machinist_quote.views import render_session

DEBOUNCE = 0.05
FILE_B = CadFile(name="housing.stl", size=1_024_000, content_type="model/stl")


def test_first_quote_is_displayed(cad_file, provider_factory, quote_factory):
    q1 = quote_factory(total=1234.5)
    provider = provider_factory(results=[q1])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        assert session.state.phase == Phase.AWAITING_QUOTE
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert session.state.phase == Phase.READY
    assert session.state.quote == q1

    view = session.view()
    assert view["quote"]["totalCost"] == q1.total_cost
    assert view["quote"]["totalDisplay"] == "$1,234.50"
    assert len(view["quote"]["costBreakdown"]) == len(q1.cost_breakdown)
    assert provider.calls[0].file == cad_file
    assert provider.calls[0].options == QuoteOptions()
    assert provider.calls[0].previous_quote is None


def test_rapid_edits_issue_exactly_one_request(cad_file, provider_factory):
    provider = provider_factory()

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=0.2)
        session.select_file(cad_file)
        await session.wait_idle()
        for quantity in (2, 3, 4, 5, 6):
            session.change_options(QuoteOptions(quantity=quantity))
            await asyncio.sleep(0.01)
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    # One for the file, one for the settled edits
    assert len(provider.calls) == 2
    assert provider.calls[1].options.quantity == 6
    assert session.state.phase == Phase.READY


def test_option_edit_sends_previous_quote(cad_file, provider_factory, quote_factory):
    q1, q2 = quote_factory(total=412.5), quote_factory(total=2100.0)
    provider = provider_factory(results=[q1, q2])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await session.wait_idle()
        session.change_options(QuoteOptions(quantity=10))
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert provider.calls[1].previous_quote == q1
    assert provider.calls[1].previous_options == QuoteOptions()
    assert provider.calls[1].options.quantity == 10
    assert session.state.phase == Phase.READY
    assert session.state.quote == q2
    assert session.state.quote_options.quantity == 10
    assert session.state.error is None


def test_quote_stays_visible_while_refreshing(cad_file, provider_factory, quote_factory):
    q1 = quote_factory()
    provider = provider_factory(results=[q1], delays=[0, 0.3])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        first_view = render_session(session.state)
        await session.wait_idle()
        session.change_options(QuoteOptions(finish="Polished"))
        # Before settling: edit recorded, quote untouched, nothing in flight
        assert session.state.phase == Phase.READY
        await asyncio.sleep(DEBOUNCE + 0.1)
        refreshing_view = render_session(session.state)
        await session.wait_idle()
        return first_view, refreshing_view

    first_view, refreshing_view = asyncio.run(scenario())
    assert first_view["loading_view"] == "full"
    assert first_view["quote"] is None
    assert refreshing_view["phase"] == "refreshing"
    assert refreshing_view["loading_view"] == "overlay"
    assert refreshing_view["quote"]["partName"] == q1.part_name


def test_failure_keeps_last_quote(cad_file, provider_factory, quote_factory):
    q1 = quote_factory()
    provider = provider_factory(results=[q1, TransportError("Gemini API error 503")])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await session.wait_idle()
        session.change_options(QuoteOptions(quantity=3))
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert session.state.phase == Phase.FAILED
    assert session.state.error == FAILURE_MESSAGE
    assert session.state.quote == q1


def test_failure_then_next_edit_retries(cad_file, provider_factory, quote_factory):
    q1, q3 = quote_factory(total=100), quote_factory(total=300)
    provider = provider_factory(results=[q1, FormatError("bad json"), q3])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await session.wait_idle()
        session.change_options(QuoteOptions(quantity=3))
        await session.wait_idle()
        assert session.state.phase == Phase.FAILED
        session.change_options(QuoteOptions(quantity=4))
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert len(provider.calls) == 3
    assert provider.calls[2].previous_quote == q1
    assert session.state.phase == Phase.READY
    assert session.state.quote == q3
    assert session.state.error is None


def test_unexpected_exception_is_contained(cad_file, provider_factory):
    provider = provider_factory(results=[RuntimeError("socket exploded")])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert session.state.phase == Phase.FAILED
    assert session.state.error == FAILURE_MESSAGE
    assert session.state.quote is None


def test_clearing_file_discards_in_flight_response(cad_file, provider_factory):
    provider = provider_factory(delays=[0.1])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await asyncio.sleep(0.02)
        session.clear_file()
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert len(provider.calls) == 1
    assert session.state.phase == Phase.IDLE
    assert session.state.quote is None
    assert session.state.error is None


def test_response_for_previous_file_is_dropped(cad_file, provider_factory, quote_factory):
    quote_a, quote_b = quote_factory(part_name="bracket"), quote_factory(part_name="housing")
    provider = provider_factory(results=[quote_a, quote_b], delays=[0.2, 0.01])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await asyncio.sleep(0.02)
        session.select_file(FILE_B)
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert session.state.file == FILE_B
    assert session.state.quote == quote_b


def test_new_file_during_refresh_drops_old_file_response(cad_file, provider_factory, quote_factory):
    q1 = quote_factory(part_name="bracket", total=100)
    q_refresh = quote_factory(part_name="bracket", total=900)
    q_b = quote_factory(part_name="housing", total=250)
    provider = provider_factory(results=[q1, q_refresh, q_b], delays=[0, 0.3, 0.01])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await session.wait_idle()
        session.change_options(QuoteOptions(quantity=5))
        await asyncio.sleep(DEBOUNCE + 0.05)   # slow refresh for bracket in flight
        assert session.state.phase == Phase.REFRESHING
        session.select_file(FILE_B)
        assert session.state.phase == Phase.AWAITING_QUOTE
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert len(provider.calls) == 3
    assert provider.calls[2].file == FILE_B
    assert provider.calls[2].previous_quote is None
    assert session.state.file == FILE_B
    assert session.state.quote == q_b
    assert session.state.phase == Phase.READY


def test_slow_superseded_options_response_is_dropped(cad_file, provider_factory, quote_factory):
    q1, q2, q3 = quote_factory(total=100), quote_factory(total=200), quote_factory(total=300)
    provider = provider_factory(results=[q1, q2, q3], delays=[0, 0.3, 0.01])

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await session.wait_idle()
        session.change_options(QuoteOptions(quantity=2))
        await asyncio.sleep(DEBOUNCE + 0.05)   # settles, slow request in flight
        session.change_options(QuoteOptions(quantity=3))
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert len(provider.calls) == 3
    assert session.state.quote == q3
    assert session.state.quote_options.quantity == 3
    assert session.state.phase == Phase.READY


def test_invalid_quantity_coerced_before_request(cad_file, provider_factory):
    provider = provider_factory()

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.change_options(QuoteOptions(quantity=5))
        session.select_file(cad_file)
        await session.wait_idle()
        session.change_options(QuoteOptions(quantity="abc"))
        await session.wait_idle()
        return session

    asyncio.run(scenario())
    assert provider.calls[0].options.quantity == 5
    assert provider.calls[1].options.quantity == 1


def test_selecting_file_cancels_pending_edit(cad_file, provider_factory):
    provider = provider_factory()

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await session.wait_idle()
        session.change_options(QuoteOptions(material="PEEK"))
        session.select_file(FILE_B)
        await asyncio.sleep(DEBOUNCE * 3)
        await session.wait_idle()
        return session

    asyncio.run(scenario())
    # File A, then file B with the edited options; the pending edit never fires separately
    assert len(provider.calls) == 2
    assert provider.calls[1].file == FILE_B
    assert provider.calls[1].options.material == "PEEK"
    assert provider.calls[1].previous_quote is None


def test_edits_without_file_never_request(provider_factory):
    provider = provider_factory()

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.change_options(QuoteOptions(quantity=9))
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert provider.calls == []
    assert session.state.phase == Phase.IDLE
    assert session.state.debounced_options.quantity == 9


def test_close_cancels_pending_edit(cad_file, provider_factory):
    provider = provider_factory()

    async def scenario():
        session = QuoteSession(provider, debounce_seconds=DEBOUNCE)
        session.select_file(cad_file)
        await session.wait_idle()
        session.change_options(QuoteOptions(quantity=50))
        session.close()
        await asyncio.sleep(DEBOUNCE * 3)
        return session

    session = asyncio.run(scenario())
    assert len(provider.calls) == 1
    assert session.requests_issued == 1
    assert session.in_flight == 0
