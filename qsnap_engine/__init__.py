"""Question segmentation engine (MVP).

This package turns scanned exam pages into per-question crops:
- OCR over an operator-chosen label zone
- label matching against sequence-style templates ("Q.1", "1)")
- full-width crops between consecutive labels, streamed in order

HTTP transport is out of scope; the result stream is exposed as Python
events plus an SSE encoder.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
