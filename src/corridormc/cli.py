r"""
Command-line entry point.

Example
-------
.. code-block:: console

    $ corridormc --paths 960000 --steps 100 --layout strided --backend thread
    $ python -m corridormc --backend torch --torch-device cuda --precision float32
"""

from __future__ import annotations

import argparse
import logging
import sys

from .backends.torch_base import VALID_TORCH_DEVICES
from .config import VALID_PRECISIONS, SimulationConfig
from .exceptions import CorridorError
from .layouts import DEFAULT_GROUP_WIDTH, VALID_LAYOUTS
from .simulation import DEFAULT_SEED, CorridorSimulation

__all__ = ["build_parser", "main"]


def _confidence_level(text: str) -> float:
    """``type=`` converter for ``--confidence``; accepts values in (0, 1)."""
    try:
        value = float(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid float value: {text!r}") from e
    if not 0.0 < value < 1.0:
        raise argparse.ArgumentTypeError(f"confidence must be in the interval (0, 1), got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser of the ``corridormc`` command."""
    defaults = SimulationConfig()
    parser = argparse.ArgumentParser(
        prog="corridormc",
        description="Monte Carlo price of a two-leg double corridor digital.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    model = parser.add_argument_group("model")
    model.add_argument("--steps", type=int, default=defaults.num_steps, help="Time steps per path (N)")
    model.add_argument("--paths", type=int, default=defaults.num_paths, help="Number of paths (P)")
    model.add_argument("--horizon", type=float, default=defaults.horizon, help="Maturity T in years")
    model.add_argument("--rate", type=float, default=defaults.risk_free_rate, help="Risk-free rate r")
    model.add_argument("--volatility", type=float, default=defaults.volatility, help="Volatility sigma")
    model.add_argument("--correlation", type=float, default=defaults.correlation, help="Correlation rho")
    model.add_argument(
        "--half-width", type=float, default=defaults.corridor_half_width,
        help="Corridor half-width around 1.0",
    )
    model.add_argument("--precision", choices=VALID_PRECISIONS, default=defaults.precision)

    run = parser.add_argument_group("run")
    run.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed")
    run.add_argument("--layout", choices=VALID_LAYOUTS, default="strided", help="Shock buffer layout")
    run.add_argument(
        "--group-width", type=int, default=DEFAULT_GROUP_WIDTH,
        help="Execution-group width of the strided layout",
    )
    run.add_argument(
        "--backend", choices=CorridorSimulation._VALID_BACKENDS,  # pylint: disable=protected-access
        default="auto",
    )
    run.add_argument("--torch-device", choices=VALID_TORCH_DEVICES, default="cpu")
    run.add_argument("--workers", type=int, default=None, help="Threads for the thread backend")
    run.add_argument("--memory-budget", type=int, default=None, help="Memory budget in bytes")
    run.add_argument("--confidence", type=_confidence_level, default=0.95, help="Confidence level of the interval")
    run.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run a simulation from command-line arguments and print the result."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger("corridormc").setLevel(logging.DEBUG)
        logging.getLogger("corridormc.simulation").setLevel(logging.DEBUG)

    try:
        config = SimulationConfig(
            num_steps=args.steps,
            num_paths=args.paths,
            horizon=args.horizon,
            risk_free_rate=args.rate,
            volatility=args.volatility,
            correlation=args.correlation,
            corridor_half_width=args.half_width,
            precision=args.precision,
        )
        sim = CorridorSimulation(config, layout=args.layout, group_width=args.group_width)
        sim.set_seed(args.seed)
        result = sim.run(
            backend=args.backend,
            torch_device=args.torch_device,
            n_workers=args.workers,
            memory_budget=args.memory_budget,
            keep_payoffs=False,
        )
    except CorridorError as e:
        print(f"{e.phase} failed: {e}", file=sys.stderr)
        return 1

    print(result.result_to_string(confidence=args.confidence))
    return 0
