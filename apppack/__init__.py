"""apppack: release packaging for a native desktop application.

Core design goals:
- Explicit stage graph (binary -> app -> dmg -> install)
- Idempotent stages, skipped while their output is current
- External tools behind a narrow command-runner seam
- Centralized logging
"""

__all__ = []
