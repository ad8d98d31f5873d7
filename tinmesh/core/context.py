"""Per-call context for triangulation runs.

Everything a run needs beyond its geometric input lives in a caller-owned
TriangulationContext, so several runs can execute in parallel (threads or
executor workers) without sharing mutable state.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from .config import TriangulationConfig
from .errors import Cancelled
from .logging_utils import get_logger


class CancelToken:
    """Thread-safe cancellation flag checked at loop boundaries."""

    __slots__ = ('_event',)

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise Cancelled(stage)


@dataclass
class TriangulationContext:
    config: TriangulationConfig = field(default_factory=TriangulationConfig)
    cancel: CancelToken = field(default_factory=CancelToken)
    builder: Optional[object] = None
    logger: logging.Logger = field(default_factory=lambda: get_logger('tinmesh.engine'))

    def __post_init__(self):
        self.config.validate()
        if self.builder is None:
            from .delaunay import ScipyDelaunayBuilder
            self.builder = ScipyDelaunayBuilder()

    def check(self, stage: str) -> None:
        self.cancel.raise_if_cancelled(stage)


__all__ = ['CancelToken', 'TriangulationContext']
