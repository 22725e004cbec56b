"""FastAPI server adapter for matter-workflows.

Design intent:
- Keep workflow semantics in `matter_workflows.engine`
- Keep server-specific concerns (routing, CORS, status mapping) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from matter_workflows.server.app import create_app
