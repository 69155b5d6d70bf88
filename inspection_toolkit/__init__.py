"""Top-level package for the business-logic portion of Inspection Toolkit.

This package hosts the GUI-agnostic document editing core. Front-ends
(web views, CLI, desktop) should only depend on the public API exposed here
rather than importing internal modules directly.
"""

from .core.models import Document  # re-export for convenience
from .core.session import EditorSession  # noqa: F401

__all__: list[str] = [
    "Document",
    "EditorSession",
]
