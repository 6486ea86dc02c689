"""Host-facing HTTP surface for livecommentary.

Exposes the orchestrator to a chat UI running in another process
(a browser page, a broadcast overlay) over a small FastAPI app.
"""
