"""Run triangulations on a concurrent.futures executor with cooperative cancellation."""
from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Optional

from .config import TriangulationConfig
from .context import CancelToken
from .engine import TriangulationResult, triangulate_surface
from .logging_utils import get_logger

logger = get_logger('tinmesh.jobs')


@dataclass
class TriangulationJob:
    future: Future
    token: CancelToken

    def cancel(self) -> None:
        """Request cancellation; a queued job is dropped, a running one raises Cancelled."""
        self.token.cancel()
        self.future.cancel()

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> TriangulationResult:
        return self.future.result(timeout)


def submit_triangulation(executor: Executor, points, breaklines=(), paths=(), clip_polygon=None, *,
                         config: Optional[TriangulationConfig] = None, builder=None,
                         token: Optional[CancelToken] = None) -> TriangulationJob:
    """Schedule triangulate_surface on ``executor`` and return a cancellable job handle."""
    token = token or CancelToken()
    future = executor.submit(triangulate_surface, points, breaklines, paths, clip_polygon,
                             config=config, cancel=token, builder=builder)
    logger.debug("Submitted triangulation job (%s)", type(executor).__name__)
    return TriangulationJob(future=future, token=token)


__all__ = ['TriangulationJob', 'submit_triangulation']
