"""
Machinist Quote: instant AI manufacturing estimates for uploaded CAD files.

The browser uploads a part and edits quoting options; the session
orchestrator decides when to ask Gemini for a (re)priced quote.
"""
