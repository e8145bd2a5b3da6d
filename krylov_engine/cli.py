"""
Command-line tool that solves a coupled pressure/flow system with CPR and SIMPLE.

Example::

    krylov-two-step -A matrix.mtx -m %0:2 -b rhs.mtx -s gmres
"""

import argparse
import sys
import time
from typing import List, Optional

import numpy as np

from . import io
from .amg import CoarseningType
from .errors import ConfigurationError, FormatError
from .logger import get_logger, setup_logger
from .make_solver import LinearSolver
from .params import Params
from .relaxation import RelaxationType
from .runtime import SolverType
from .utils import pressure_mask

logger = get_logger(__name__)


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Parameters
    ----------
    args : Optional[List[str]], optional
        Command line arguments, by default None (uses sys.argv[1:])

    Returns
    -------
    argparse.Namespace
        Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        prog="krylov-two-step",
        description="Solve a pressure/flow system with CPR and SIMPLE preconditioners",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    input_group = parser.add_argument_group("Input parameters")
    input_group.add_argument(
        "-A", "--matrix", required=True, help="The system matrix in MatrixMarket format"
    )
    input_group.add_argument(
        "-m",
        "--pmask",
        required=True,
        help="The pressure mask in MatrixMarket format. Or, if the parameter has "
        "the form '%%start:stride', then each (start + i * stride)-th variable "
        "is treated as pressure.",
    )
    input_group.add_argument(
        "-b", "--rhs", default=None, help="The right-hand side in MatrixMarket format"
    )
    input_group.add_argument(
        "-B",
        "--binary",
        action="store_true",
        default=False,
        help="Treat input files as binary CRS/dense files instead of MatrixMarket",
    )
    input_group.add_argument(
        "-p", "--params", default=None, help="Parameter file in JSON format"
    )

    solver_group = parser.add_argument_group("Solver parameters")
    solver_group.add_argument(
        "-c",
        "--coarsening",
        default=CoarseningType.SMOOTHED_AGGREGATION.value,
        choices=[c.value for c in CoarseningType],
        help="Coarsening for the pressure AMG",
    )
    solver_group.add_argument(
        "-r",
        "--pressure-relaxation",
        default=RelaxationType.SPAI0.value,
        choices=[r.value for r in RelaxationType],
        help="Relaxation for the pressure AMG",
    )
    solver_group.add_argument(
        "-f",
        "--flow-relaxation",
        default=RelaxationType.ILU0.value,
        choices=[r.value for r in RelaxationType],
        help="Relaxation for the flow unknowns",
    )
    solver_group.add_argument(
        "-s",
        "--solver",
        default=SolverType.BICGSTAB.value,
        choices=[s.value for s in SolverType],
        help="Iterative solver",
    )

    output_group = parser.add_argument_group("Output parameters")
    output_group.add_argument(
        "-o", "--output", default="out.mtx", help="The output file (saved in MatrixMarket format)"
    )

    log_group = parser.add_argument_group("Logging parameters")
    log_group.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    log_group.add_argument("--log-file", type=str, default=None, help="Log file path")

    return parser.parse_args(args)


def _read_column(path: str, binary: bool, rows: int, what: str, dtype=np.float64) -> np.ndarray:
    data = io.read_dense(path, dtype=dtype) if binary else io.read_dense_matrix_market(path)
    if data.shape != (rows, 1):
        raise ConfigurationError(f"{what} has wrong size {data.shape}, expected ({rows}, 1)")
    return data.ravel()


def build_params(args: argparse.Namespace, pmask: np.ndarray) -> Params:
    """Combine the parameter file with the command-line selections."""
    prm = Params.from_json(args.params) if args.params else Params()
    prm.put("precond.pressure.coarsening.type", args.coarsening)
    prm.put("precond.pressure.relaxation.type", args.pressure_relaxation)
    prm.put("precond.flow.type", args.flow_relaxation)
    prm.put("precond.pmask", pmask)
    prm.put("solver.type", args.solver)
    return prm


def run(args: argparse.Namespace) -> None:
    """Read the inputs, solve with both preconditioners and write the solution."""
    t0 = time.perf_counter()
    A = io.read_crs(args.matrix) if args.binary else io.read_matrix_market(args.matrix)
    rows = A.shape[0]
    if A.shape[1] != rows:
        raise ConfigurationError(f"System matrix must be square, got {A.shape}")

    if args.pmask.startswith("%"):
        pmask = pressure_mask(args.pmask, rows)
    else:
        pmask = pressure_mask(
            _read_column(args.pmask, args.binary, rows, "Mask file", dtype=np.int8), rows
        )

    if args.rhs:
        rhs = _read_column(args.rhs, args.binary, rows, "The RHS vector")
    else:
        print("RHS was not provided; using default value of 1")
        rhs = np.ones(rows)

    prm = build_params(args, pmask)
    logger.info("Read %d x %d matrix with %d nonzeros in %.3fs",
                rows, rows, A.nnz, time.perf_counter() - t0)

    solvers = {}
    for name in ("cpr", "simple"):
        prm.put("precond.class", name)
        solvers[name] = LinearSolver(A, prm)
        logger.info("%s setup: %.3fs", name.upper(), solvers[name].setup_time)

    x = None
    for name, solver in solvers.items():
        x, info = solver.solve(rhs)
        print(f"{name.upper()}:")
        print(f"  Iterations:     {info.iterations}")
        print(f"  Reported Error: {info.relative_residual:g}")
        print()
        logger.info("%s solve: %.3fs (%s)", name.upper(), info.solve_time, info.reason)

    io.write_matrix_market(args.output, x)
    logger.info("Solution written to %s", args.output)


def main(args: Optional[List[str]] = None) -> int:
    """
    Run the two-step solver from command-line arguments.

    Parameters
    ----------
    args : list of str, optional
        Command line arguments, by default ``sys.argv[1:]``

    Returns
    -------
    int
        Exit code: 0 on success, 1 on unreadable or invalid input
    """
    if args is None:
        args = sys.argv[1:]

    parsed_args = parse_args(args)
    setup_logger(level=parsed_args.log_level, log_file=parsed_args.log_file)

    try:
        run(parsed_args)
    except (OSError, FormatError, ConfigurationError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
