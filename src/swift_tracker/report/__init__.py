from __future__ import annotations

from .formatter import print_analysis, print_chains, print_overview
from .serializer import build_envelope, to_json_compatible

__all__ = [
    "build_envelope",
    "print_analysis",
    "print_chains",
    "print_overview",
    "to_json_compatible",
]
