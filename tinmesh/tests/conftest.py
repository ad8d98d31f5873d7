import io
import logging
import datetime
import pathlib

import numpy as np
import pytest


LOG_DIR = pathlib.Path(__file__).parent / "test-logs"


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    # Attach the TestReport to the item so fixtures can see the outcome in teardown.
    outcome = yield
    rep = outcome.get_result()
    setattr(item, "rep_" + rep.when, rep)


@pytest.fixture(autouse=True)
def capture_tinmesh_logs(request):
    """Capture 'tinmesh' logging for each test and write it to a file only when the test fails."""
    log = logging.getLogger("tinmesh")
    buf = io.StringIO()
    handler = logging.StreamHandler(buf)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    log.addHandler(handler)
    prev_level = log.level
    log.setLevel(logging.DEBUG)
    try:
        yield
    finally:
        log.removeHandler(handler)
        log.setLevel(prev_level)
        rep = getattr(request.node, "rep_call", None)
        if rep is not None and getattr(rep, "outcome", None) == "failed":
            nodeid = request.node.nodeid.replace("::", "__").replace("/", "_")
            ts = datetime.datetime.now().strftime("%Y%m%dT%H%M%S")
            try:
                LOG_DIR.mkdir(exist_ok=True)
                with open(LOG_DIR / "{}__{}.log".format(nodeid, ts), "w", encoding="utf-8") as f:
                    f.write("=== Test: {}\n\n".format(request.node.nodeid))
                    f.write(buf.getvalue())
            except OSError:
                pass


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def grid_points():
    """5x5 lattice on the unit square with small deterministic jitter (no cocircular quads)."""
    r = np.random.default_rng(7)
    xs, ys = np.meshgrid(np.linspace(0.0, 1.0, 5), np.linspace(0.0, 1.0, 5))
    pts = np.column_stack((xs.ravel(), ys.ravel()))
    pts += r.uniform(-0.01, 0.01, size=pts.shape)
    z = 0.3 * pts[:, 0] + 0.1 * pts[:, 1] ** 2
    return np.column_stack((pts, z))
