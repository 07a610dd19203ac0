r"""
Corridor simulation orchestration.

This module provides:

Classes
    :class:`CorridorSimulation` — Runs generation, simulation, transfer and aggregation
    :class:`CorridorResult` — Container for the outcome of a run

A run executes five phases, each timed and each with its own failure mode:

1. ``preflight`` — resolve the backend and check the memory budget of
   its device (:class:`~corridormc.exceptions.ConfigurationError`).
2. ``generation`` — fill the whole shock buffer
   (:class:`~corridormc.exceptions.GenerationError`).
3. ``simulation`` — evaluate every path
   (:class:`~corridormc.exceptions.ExecutionError`).
4. ``transfer`` — copy the payoffs into host memory
   (:class:`~corridormc.exceptions.TransferError`).
5. ``aggregation`` — reduce the payoffs to a mean and a standard error
   (:class:`~corridormc.exceptions.ExecutionError`).

Each phase starts only after the previous one has completed for *all* paths.

Example
-------
>>> from corridormc import CorridorSimulation, SimulationConfig
>>> sim = CorridorSimulation(SimulationConfig(num_paths=100_000), layout="strided")
>>> sim.set_seed(1234)
>>> result = sim.run(backend="thread")  # doctest: +SKIP
>>> print(result.result_to_string())  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np

from .aggregation import AggregateResult, aggregate
from .backends import SequentialBackend, ThreadBackend, transfer_to_host
from .config import SimulationConfig
from .devices import DeviceInfo, check_memory_budget, query_device
from .exceptions import (
    ConfigurationError,
    CorridorError,
    ExecutionError,
    GenerationError,
    TransferError,
)
from .layouts import DEFAULT_GROUP_WIDTH, LayoutStrategy, make_layout
from .random_source import NumpyRandomSource, RandomSource, TorchRandomSource

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

__all__ = ["CorridorSimulation", "CorridorResult", "DEFAULT_SEED"]

# Seed used when none is given
DEFAULT_SEED = 1234


@dataclass
class CorridorResult:
    r"""
    Container for the outcome of a corridor run.

    Attributes
    ----------
    aggregate : AggregateResult
        Mean and standard error of the discounted payoff.
    payoffs : ndarray or None
        Host copy of the payoff collection (``None`` with ``keep_payoffs=False``).
    execution_time : float
        Wall-clock time of the whole run in seconds.
    timings : dict[str, float]
        Wall-clock seconds per phase.
    metadata : dict
        Includes ``"simulation_name"``, ``"timestamp"``, ``"seed_entropy"``,
        ``"layout"``, ``"backend"`` and the run dimensions.
    """

    aggregate: AggregateResult
    payoffs: np.ndarray | None
    execution_time: float
    timings: dict[str, float] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def mean(self) -> float:
        return self.aggregate.mean

    @property
    def std_error(self) -> float:
        return self.aggregate.std_error

    def result_to_string(self, confidence: float = 0.95) -> str:
        r"""
        Human-readable summary of the result.

        Values are printed with eight decimals so that changes at the
        :math:`10^{-5}` level of the discount factor remain visible.

        Parameters
        ----------
        confidence : float, default 0.95
            Confidence level of the displayed interval.

        Returns
        -------
        str
            Multiline textual summary.
        """
        ci = self.aggregate.confidence_interval(confidence)
        if simulation_name := self.metadata.get("simulation_name"):
            title = f"Results for simulation '{simulation_name}':"
        else:
            title = "Results for simulation:"
        lines = [
            "=" * 20 + " SIM RESULTS " + "=" * 20,
            title,
            f"  Number of paths: {self.aggregate.n_paths}",
            f"  Execution time: {self.execution_time:.2f} seconds",
            f"  Average value: {self.aggregate.mean:13.8f}",
            f"  Standard error: {self.aggregate.std_error:13.8f}",
            f"  {int(confidence * 100)}% {ci['method']}-CI: [{ci['low']:.8f}, {ci['high']:.8f}]",
        ]
        if self.timings:
            lines.append("Timings:")
        for phase, seconds in self.timings.items():
            lines.append(f"    {phase}: {seconds * 1e3:.1f} ms")
        if self.metadata:
            lines.append("Metadata:")
        for k, v in self.metadata.items():
            lines.append(f"    {k}: {v}")
        lines.append("=" * 20 + " END " + "=" * 20)
        return "\n".join(lines)


class CorridorSimulation:
    r"""
    Monte Carlo estimate of a two-leg double corridor digital.

    Parameters
    ----------
    config : SimulationConfig, optional
        Model parameters; defaults to :class:`SimulationConfig()`.
    layout : {"strided", "contiguous"} or LayoutStrategy, default "strided"
        Arrangement of the shock buffer. A strategy instance must match the
        config's ``num_steps`` and ``num_paths``.
    group_width : int, default 64
        Execution-group width of the strided layout.
    name : str, default "Corridor"
        Label stored in result metadata.
    random_source : RandomSource, optional
        Overrides the generator chosen for the backend (NumPy on the host,
        Torch on the Torch backend's device).

    Notes
    -----
    **Seeding.** :meth:`set_seed` stores a :class:`numpy.random.SeedSequence`.
    The whole buffer is generated from it before any path is evaluated, so a
    run's payoffs depend on the seed, the config and the layout only, never
    on the backend's worker count or block size.
    """

    # Minimum paths to use parallel execution under backend="auto"
    _PARALLEL_THRESHOLD = 20_000
    _VALID_BACKENDS = ("auto", "sequential", "thread", "torch")

    def __init__(
        self,
        config: SimulationConfig | None = None,
        *,
        layout: str | LayoutStrategy = "strided",
        group_width: int = DEFAULT_GROUP_WIDTH,
        name: str = "Corridor",
        random_source: RandomSource | None = None,
    ):
        self.config = config if config is not None else SimulationConfig()
        self.name = name
        self.random_source = random_source
        if isinstance(layout, LayoutStrategy):
            if (layout.num_steps, layout.num_paths) != (self.config.num_steps, self.config.num_paths):
                raise ConfigurationError(
                    f"layout shape ({layout.num_steps}, {layout.num_paths}) does not match config "
                    f"({self.config.num_steps}, {self.config.num_paths})"
                )
            self.layout = layout
        else:
            self.layout = make_layout(layout, self.config.num_steps, self.config.num_paths, group_width)
        self.seed_seq: np.random.SeedSequence | None = None
        self.set_seed(DEFAULT_SEED)

    def set_seed(self, seed: int | None) -> None:
        r"""
        Set the random seed for reproducible runs.

        Parameters
        ----------
        seed : int or None
            Seed for :class:`numpy.random.SeedSequence`. ``None`` chooses entropy
            from the OS.

        Raises
        ------
        ConfigurationError
            If ``seed`` is not a non-negative integer or ``None``.
        """
        try:
            self.seed_seq = np.random.SeedSequence(seed)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid seed {seed!r}: {e}") from e

    def _validate_run_params(
        self,
        backend: str,
        n_workers: int | None,
        memory_budget: int | None,
    ) -> None:
        """Validate parameters for run() method."""
        if backend not in self._VALID_BACKENDS:
            raise ConfigurationError(f"backend must be one of {self._VALID_BACKENDS}, got '{backend}'")
        if n_workers is not None and n_workers <= 0:
            raise ConfigurationError("n_workers must be positive")
        if memory_budget is not None and memory_budget <= 0:
            raise ConfigurationError("memory_budget must be positive")

    def _resolve_backend(self, backend: str, n_workers: int) -> str:
        """Map ``"auto"`` to ``"sequential"`` for small jobs and ``"thread"`` otherwise."""
        if backend != "auto":
            return backend
        if n_workers <= 1 or self.config.num_paths < self._PARALLEL_THRESHOLD:
            return "sequential"
        return "thread"

    def _create_backend(self, backend: str, n_workers: int, torch_device: str):
        r"""
        Create and instantiate the appropriate execution backend.

        Returns
        -------
        SequentialBackend, ThreadBackend, or TorchBackend
            Configured backend instance.
        """
        if backend == "sequential":
            return SequentialBackend()
        if backend == "thread":
            return ThreadBackend(n_workers=n_workers)
        from .backends import TorchBackend  # pylint: disable=import-outside-toplevel
        return TorchBackend(device=torch_device)

    def _create_random_source(self, backend: str, torch_device: str) -> RandomSource:
        if self.random_source is not None:
            return self.random_source
        if backend == "torch":
            device = "cuda:0" if torch_device == "cuda" else torch_device
            return TorchRandomSource(device=device, dtype=self.config.precision)
        return NumpyRandomSource(dtype=self.config.dtype)

    def _preflight(
        self,
        backend: str,
        torch_device: str,
        n_workers: int,
        memory_budget: int | None,
    ) -> tuple[str, Any, RandomSource, DeviceInfo]:
        resolved = self._resolve_backend(backend, n_workers)
        device = query_device(torch_device if resolved == "torch" else "cpu")
        need = check_memory_budget(self.config, device, budget=memory_budget)
        logger.debug("Pre-flight: %s backend on %s, %d bytes required", resolved, device.name, need)
        instance = self._create_backend(resolved, n_workers, torch_device)
        source = self._create_random_source(resolved, torch_device)
        return resolved, instance, source, device

    @staticmethod
    def _run_phase(
        phase: str,
        error_cls: type[CorridorError],
        timings: dict[str, float],
        fn: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Run one phase, time it, and re-raise failures as the phase's error."""
        t0 = time.perf_counter()
        try:
            return fn(*args, **kwargs)
        except CorridorError:
            raise
        except (ImportError, MemoryError, RuntimeError, ValueError) as e:
            # pre-flight failures are reported as configuration failures
            err_phase = error_cls.default_phase if error_cls is ConfigurationError else phase
            raise error_cls(f"{type(e).__name__}: {e}", phase=err_phase) from e
        finally:
            timings[phase] = time.perf_counter() - t0

    def _generate(self, source: RandomSource) -> Any:
        count = self.config.buffer_size
        logger.info("Generating %d normals (seed entropy %s)...", count, self.seed_seq.entropy)
        buffer = source.generate(count, self.seed_seq)
        size = buffer.size if isinstance(buffer, np.ndarray) else buffer.numel()
        if size != count:
            raise GenerationError(f"random source returned {size} values, expected {count}")
        return buffer

    def _transfer(self, payoffs: Any) -> np.ndarray:
        host = transfer_to_host(payoffs)
        if host.shape != (self.config.num_paths,):
            raise TransferError(
                f"expected {self.config.num_paths} payoffs after transfer, got shape {host.shape}"
            )
        return host

    def run(
        self,
        *,
        backend: str = "auto",
        torch_device: str = "cpu",
        n_workers: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
        memory_budget: int | None = None,
        keep_payoffs: bool = True,
    ) -> CorridorResult:
        r"""
        Run the corridor simulation.

        Parameters
        ----------
        backend : {"auto", "sequential", "thread", "torch"}, default ``"auto"``
            Execution backend to use:

            - ``"auto"`` — Sequential for small jobs, threads for large jobs
            - ``"sequential"`` — Single-threaded execution
            - ``"thread"`` — Thread-based parallelism
            - ``"torch"`` — Whole-run execution on a Torch device

        torch_device : {"cpu", "mps", "cuda"}, default ``"cpu"``
            Torch device for ``backend="torch"``. Ignored for other backends.
        n_workers : int, optional
            Worker count for the thread backend. Defaults to CPU count.
        progress_callback : callable, optional
            A function ``f(completed: int, total: int)`` called as paths finish.
        memory_budget : int, optional
            Bytes the run may use. Defaults to 75% of the device's free memory.
        keep_payoffs : bool, default ``True``
            Keep the host payoff collection on the result.

        Returns
        -------
        CorridorResult

        Raises
        ------
        ConfigurationError
            Invalid options, unavailable device, or memory budget exceeded.
        GenerationError
            The shock buffer could not be generated.
        ExecutionError
            Path evaluation or aggregation failed.
        TransferError
            Payoffs could not be copied to host memory.
        """
        self._validate_run_params(backend, n_workers, memory_budget)
        if n_workers is None:
            n_workers = mp.cpu_count()  # pragma: no cover

        timings: dict[str, float] = {}
        t_start = time.perf_counter()

        resolved, backend_instance, source, device = self._run_phase(
            "preflight", ConfigurationError, timings,
            self._preflight, backend, torch_device, n_workers, memory_budget,
        )

        buffer = self._run_phase("generation", GenerationError, timings, self._generate, source)

        if resolved == "sequential":
            logger.info("Computing %d paths sequentially...", self.config.num_paths)
        elif resolved == "thread":
            logger.info(
                "Computing %d paths in parallel using %s backend with %d workers...",
                self.config.num_paths, resolved, n_workers,
            )
        payoffs = self._run_phase(
            "simulation", ExecutionError, timings,
            backend_instance.run, self.config, buffer, self.layout, progress_callback,
        )
        del buffer

        host = self._run_phase("transfer", TransferError, timings, self._transfer, payoffs)
        del payoffs

        agg = self._run_phase("aggregation", ExecutionError, timings, aggregate, host)
        exec_time = time.perf_counter() - t_start

        logger.info(
            "Average value %.8f, standard error %.8f (%d paths, %.2f s)",
            agg.mean, agg.std_error, agg.n_paths, exec_time,
        )
        return self._create_result(agg, host if keep_payoffs else None, exec_time, timings, resolved, device)

    def _create_result(
        self,
        agg: AggregateResult,
        payoffs: np.ndarray | None,
        execution_time: float,
        timings: dict[str, float],
        backend: str,
        device: DeviceInfo,
    ) -> CorridorResult:
        """Assemble a :class:`CorridorResult` with run metadata."""
        meta = {
            "simulation_name": self.name,
            "timestamp": time.time(),
            "seed_entropy": self.seed_seq.entropy if self.seed_seq else None,
            "layout": self.layout.name,
            "group_width": getattr(self.layout, "group_width", None),
            "backend": backend,
            "device": device.device_type,
            "n_paths": self.config.num_paths,
            "n_steps": self.config.num_steps,
            "precision": self.config.precision,
        }
        return CorridorResult(
            aggregate=agg,
            payoffs=payoffs,
            execution_time=execution_time,
            timings=timings,
            metadata=meta,
        )
