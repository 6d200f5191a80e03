"""Precomputes the likely-needed variants of the selected image in a background thread pool."""

import dataclasses
import logging
import os
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from photocull.errors import CancelledOperation, PhotocullError
from photocull.imaging.cache import ProcessedImageCache, build_cache_key
from photocull.imaging.processor import process_file, resolve_params
from photocull.models import (
    DEFAULT_DISCARD_PERCENT,
    DEFAULT_VALUE_GAMMA,
    LevelsParams,
    PercentileParams,
    TransformKind,
)

log = logging.getLogger(__name__)

PRECOMPUTED_KINDS = (TransformKind.WHITE_BALANCE_RGB, TransformKind.WHITE_BALANCE_VALUE)


@dataclasses.dataclass
class PrecomputeJob:
    """The single active unit of background work, bound to one selected image."""
    generation: int
    path: Path
    cancel: threading.Event
    futures: Dict[TransformKind, Future] = dataclasses.field(default_factory=dict)

    def is_done(self) -> bool:
        return all(f.done() for f in self.futures.values())


class Precomputer:
    def __init__(
        self,
        cache: ProcessedImageCache,
        max_workers: Optional[int] = None,
        discard_percent: float = DEFAULT_DISCARD_PERCENT,
        value_gamma: float = DEFAULT_VALUE_GAMMA,
        process: Callable[..., bytes] = process_file,
    ):
        self.cache = cache
        self._process = process
        self._params = {
            TransformKind.WHITE_BALANCE_RGB: PercentileParams(discard_percent).validate(),
            TransformKind.WHITE_BALANCE_VALUE: LevelsParams(gamma=value_gamma).validate(),
        }
        # numpy and OpenCV release the GIL, so threads give real parallelism here.
        # One job fans out to len(PRECOMPUTED_KINDS) tasks; a few spare workers
        # keep a stale task from delaying the next selection.
        optimal_workers = max_workers or min(max(os.cpu_count() or 1, len(PRECOMPUTED_KINDS)), 4)

        self.executor = ThreadPoolExecutor(
            max_workers=optimal_workers,
            thread_name_prefix="Precompute"
        )
        self._lock = threading.Lock()
        self.generation = 0
        self._job: Optional[PrecomputeJob] = None

    @property
    def current_job(self) -> Optional[PrecomputeJob]:
        with self._lock:
            return self._job

    def params_for(self, kind: TransformKind):
        """Parameters the precomputed variant of kind is computed with."""
        return self._params.get(kind)

    def select(self, path: Union[Path, str]) -> PrecomputeJob:
        """Cancels the running job and starts precomputing the variants for path."""
        path = Path(path)
        with self._lock:
            self._cancel_job_locked()
            self.generation += 1
            job = PrecomputeJob(generation=self.generation, path=path, cancel=threading.Event())
            self._job = job

            for kind in PRECOMPUTED_KINDS:
                params = self._params[kind]
                if self.cache.peek(build_cache_key(path, kind, params)) is not None:
                    log.debug("%s for %s already cached; not scheduling", kind.value, path)
                    continue
                job.futures[kind] = self.executor.submit(self._compute_and_cache, job, kind, params)

        log.debug("Started precompute generation %d for %s (%d tasks)",
                  job.generation, path, len(job.futures))
        return job

    def _compute_and_cache(self, job: PrecomputeJob, kind: TransformKind, params) -> Optional[bytes]:
        """The actual work done by the thread pool."""
        if job.cancel.is_set():
            log.debug("Skipping stale %s task for %s (gen %d)", kind.value, job.path, job.generation)
            return None

        try:
            data = self._process(job.path, kind, params, cancel=job.cancel)
        except CancelledOperation:
            log.debug("Cancelled %s for %s (gen %d)", kind.value, job.path, job.generation)
            return None
        except PhotocullError as e:
            log.warning("Failed to compute %s for %s: %s", kind.value, job.path, e)
            raise
        except Exception:
            log.exception("Error computing %s for %s", kind.value, job.path)
            raise

        # Publish under the lock so a result can never land after its job was superseded
        with self._lock:
            if job.cancel.is_set() or self._job is not job:
                log.debug("Generation %d superseded before caching %s. Discarding.",
                          job.generation, kind.value)
                return None
            self.cache.set(build_cache_key(job.path, kind, params), data)

        log.debug("Precomputed %s for %s (gen %d)", kind.value, job.path, job.generation)
        return data

    def in_flight(self, path: Union[Path, str], kind: TransformKind, params=None) -> Optional[Future]:
        """Returns the current job's future for this key, if one is scheduled."""
        path = Path(path)
        with self._lock:
            job = self._job
            if job is None or job.cancel.is_set() or job.path != path:
                return None
            if params is not None and params != self._params.get(kind):
                return None
            return job.futures.get(kind)

    def get_or_compute(self, path: Union[Path, str], kind: TransformKind, params=None) -> Optional[bytes]:
        """Returns the result bytes, waiting on in-flight work rather than duplicating it.

        Falls back to computing synchronously when nothing is cached or running.
        Returns None if the result cannot be produced; InvalidParameters propagates.
        """
        path = Path(path)
        if params is None:
            params = self._params.get(kind)
        params = resolve_params(kind, params)
        key = build_cache_key(path, kind, params)

        data = self.cache.get(key)
        if data is not None:
            return data

        future = self.in_flight(path, kind, params)
        if future is not None:
            try:
                data = future.result()
            except CancelledError:
                log.debug("In-flight %s for %s was cancelled; computing directly", kind.value, path)
            except Exception as e:
                log.warning("In-flight %s for %s failed: %s", kind.value, path, e)
                return None
            if data is not None:
                return data

        try:
            data = self._process(path, kind, params)
        except PhotocullError as e:
            log.warning("Failed to compute %s for %s: %s", kind.value, path, e)
            return None
        self.cache.set(key, data)
        return data

    def _cancel_job_locked(self):
        job = self._job
        if job is None:
            return
        job.cancel.set()
        for future in job.futures.values():
            future.cancel()

    def cancel_all(self):
        """Cancels the active precompute job, if any."""
        log.info("Cancelling precompute tasks.")
        with self._lock:
            self._cancel_job_locked()
            self._job = None
            self.generation += 1

    def shutdown(self, wait: bool = False):
        """Shuts down the thread pool executor."""
        log.info("Shutting down precompute thread pool.")
        self.cancel_all()
        self.executor.shutdown(wait=wait)
