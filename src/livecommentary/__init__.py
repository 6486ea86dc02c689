"""livecommentary -- Synthetic live chat reacting to visual content.

This package periodically captures a frame from a visual source, sends it
to a vision-capable language model together with the rolling chat history,
and paces the returned reactions into a chat message list that a host UI
renders.
"""

__version__ = "0.1.0"
