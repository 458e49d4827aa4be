"""
Proxy Guard Monitoring Module

Detects signs that a remote test-taker is getting unauthorized help:
- Second face in frame
- Phone or tablet in frame (edge / texture heuristic)
- Sustained head turns
- Sustained downward gaze
- Loud audio or several voices

Per-frame detections are debounced into a time-ordered proxy event log.
"""

from .api import router

__all__ = ["router"]
