from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import TextIO

import numpy as np
from numpy.typing import NDArray
from pydantic import ValidationError
from rich.console import Console

from quantlens.contracts import QuantileFinder
from quantlens.estimators import DoubleQuantileEstimator
from quantlens.factory import new_equi_depth_phis, new_quantile_finder
from quantlens.models import PlanRow, QuantileFinderConfig, QuantileReport
from quantlens.reporters import RichReporter
from quantlens.solver import known_n_compute_b_and_k, unknown_n_compute_b_and_k

_CHUNK_SIZE = 65536


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quantlens", description="QuantLens CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    estimate = subparsers.add_parser(
        "estimate", help="Estimate quantiles of the numbers in a text file"
    )
    estimate.add_argument(
        "path",
        type=str,
        help="Whitespace separated numbers ('-' reads standard input)",
    )
    estimate.add_argument("--epsilon", type=float, default=0.001)
    estimate.add_argument("--delta", type=float, default=0.0001)
    estimate.add_argument(
        "--quantiles",
        type=int,
        default=4,
        help="Number of equi-depth parts reported when --phis is omitted",
    )
    estimate.add_argument("--phis", type=float, nargs="+", default=None)
    estimate.add_argument(
        "--n",
        type=int,
        default=None,
        help="Exact stream length, if known in advance",
    )
    estimate.add_argument("--seed", type=int, default=None)

    plan = subparsers.add_parser(
        "plan", help="Show the memory the solver needs for a parameter grid"
    )
    plan.add_argument(
        "--n", type=int, nargs="+", default=[100_000, 1_000_000, 10_000_000]
    )
    plan.add_argument(
        "--epsilon", type=float, nargs="+", default=[0.1, 0.01, 0.001]
    )
    plan.add_argument("--delta", type=float, nargs="+", default=[0.0, 0.0001])
    plan.add_argument("--quantiles", type=int, default=100)
    return parser


def _read_chunks(stream: TextIO, chunk_size: int) -> Iterator[NDArray[np.float64]]:
    tokens: list[str] = []
    for line in stream:
        tokens.extend(line.split())
        if len(tokens) >= chunk_size:
            yield np.array(tokens, dtype=np.float64)
            tokens = []
    if tokens:
        yield np.array(tokens, dtype=np.float64)


def _consume(finder: QuantileFinder, stream: TextIO) -> None:
    for chunk in _read_chunks(stream, _CHUNK_SIZE):
        finder.add_all(chunk)


def _build_report(
    source: str, finder: QuantileFinder, phis: list[float]
) -> QuantileReport:
    b = k = None
    if isinstance(finder, DoubleQuantileEstimator):
        b, k = finder.b, finder.k
    quantiles = finder.quantile_elements(phis)
    return QuantileReport(
        source=source,
        finder=type(finder).__name__,
        b=b,
        k=k,
        size=finder.size,
        memory=finder.memory(),
        total_memory=finder.total_memory(),
        phis=phis,
        quantiles=[float(value) for value in quantiles],
    )


def _run_estimate(args: argparse.Namespace, *, console: Console) -> int:
    if args.phis is not None:
        phis = sorted(float(phi) for phi in args.phis)
    elif args.quantiles >= 1:
        phis = new_equi_depth_phis(args.quantiles)
    else:
        console.print("--quantiles must be >= 1.")
        return 2

    try:
        config = QuantileFinderConfig(
            epsilon=args.epsilon,
            delta=args.delta,
            quantiles=max(1, len(phis)),
            n=args.n,
            known_n=args.n is not None,
            seed=args.seed,
        )
        finder = new_quantile_finder(config)
    except (ValidationError, ValueError) as exc:
        console.print(f"Invalid configuration: {exc}")
        return 2

    path = Path(args.path)
    try:
        if args.path == "-":
            _consume(finder, sys.stdin)
        else:
            with path.open("r", encoding="utf-8") as stream:
                _consume(finder, stream)
    except FileNotFoundError:
        console.print(f"Input not found: {path}")
        return 2
    except ValueError as exc:
        console.print(f"Invalid number in {args.path}: {exc}")
        return 2

    if finder.size == 0:
        console.print(f"No values read from {args.path}.")
        return 1

    try:
        report = _build_report(args.path, finder, phis)
    except ValueError as exc:
        console.print(f"Invalid phis: {exc}")
        return 2

    RichReporter(console).render(report)
    return 0


def _plan_rows(
    sizes: Sequence[int],
    epsilons: Sequence[float],
    deltas: Sequence[float],
    quantiles: int,
) -> list[PlanRow]:
    rows: list[PlanRow] = []
    for delta in deltas:
        for epsilon in epsilons:
            # validates the grid point
            QuantileFinderConfig(epsilon=epsilon, delta=delta, quantiles=quantiles)
            for n in sizes:
                known = known_n_compute_b_and_k(n, epsilon, delta, quantiles)
                rows.append(
                    PlanRow(
                        quantiles=quantiles,
                        n=n,
                        epsilon=epsilon,
                        delta=delta,
                        known_n=True,
                        b=known.b,
                        k=known.k,
                        memory=known.memory,
                    )
                )
            unknown = unknown_n_compute_b_and_k(epsilon, delta, quantiles)
            rows.append(
                PlanRow(
                    quantiles=quantiles,
                    n=None,
                    epsilon=epsilon,
                    delta=delta,
                    known_n=False,
                    b=unknown.b,
                    k=unknown.k,
                    memory=unknown.memory,
                )
            )
    return rows


def _run_plan(args: argparse.Namespace, *, console: Console) -> int:
    if any(n < 0 for n in args.n):
        console.print("--n values must be >= 0.")
        return 2
    try:
        rows = _plan_rows(args.n, args.epsilon, args.delta, args.quantiles)
    except ValidationError as exc:
        console.print(f"Invalid configuration: {exc}")
        return 2
    RichReporter(console).render_plan(rows)
    return 0


def run_cli(
    argv: Sequence[str] | None = None, *, console: Console | None = None
) -> int:
    logging.getLogger().setLevel(logging.ERROR)
    parser = _build_parser()
    args = parser.parse_args(argv)
    out_console = console or Console()
    if args.command == "estimate":
        return _run_estimate(args, console=out_console)
    if args.command == "plan":
        return _run_plan(args, console=out_console)
    parser.error("Unknown command.")
    return 2


def main() -> None:
    raise SystemExit(run_cli())
