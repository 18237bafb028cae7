"""
Optional inference backends for yolo_postproc.

Backends are kept in a separate module so core post-processing stays
lightweight and can be used without installing inference runtimes.
"""

from __future__ import annotations

__all__ = []
