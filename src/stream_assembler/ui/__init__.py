"""Presentation adapters for applications embedding the engine.

This package is the outermost layer.  It may import from ``core`` and
``utils``, but no other layer may import from ``ui``.
"""

from stream_assembler.ui.progress import RichProgressSink

__all__: list[str] = ["RichProgressSink"]
