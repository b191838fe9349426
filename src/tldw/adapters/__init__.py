"""External service adapters.

Each adapter family exposes an abstract provider plus a stub used in
development and tests:
- llm: AI providers that write summaries
- transcripts: sources of YouTube transcripts
- payments: payment gateways for plan purchases
"""
