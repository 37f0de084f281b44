# =============================
# Background tasks
# =============================
"""
Decode and colour extraction run off the render path on a
``concurrent.futures`` executor.  Results are never applied from the
worker: the render thread polls finished futures and publishes them
after a version check (see ``color_extract.TintSlot`` and
``composer.EffectComposer``).

``InlineExecutor`` runs the work synchronously inside ``submit``.  It
is used when ``settings["background_workers"] == 0`` and by the tests,
which keeps the whole pipeline single-threaded and deterministic.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor

log = logging.getLogger(__name__)


class InlineExecutor(Executor):
    """Executor that completes every future before ``submit`` returns."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future


def make_executor(workers: int) -> Executor:
    if workers <= 0:
        log.info("Background tasks: inline (render thread)")
        return InlineExecutor()
    log.info("Background tasks: %d worker thread(s)", workers)
    return ThreadPoolExecutor(max_workers=workers,
                              thread_name_prefix="effect-bg")
