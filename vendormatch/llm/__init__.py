"""
LLM integration layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Send a vendor-ranking prompt to the Groq chat completions API.
- Turn transport failures and malformed output into ``RankingTransportError``
  so callers can fall back to the local heuristic.
"""
