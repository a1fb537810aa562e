# src/hestonmc/cli.py
"""Monte-Carlo pricing under the Heston stochastic volatility model.

Usage:
    monte-heston-sim [-c] [-v] [-g N] [-i S0] [-r R] [-m MU] [-l LAMBDA]
                     [-s SIGMA] [-k K] [-d STEPS] [-p LOG2N] [-P | -C]
                     [--seed N] [--precision {float32,float64}] [--dump-payoffs]

Examples:
    # Expected terminal price of 2**10 paths on the GPU
    monte-heston-sim

    # Call option with strike 11 on the CPU, 2**16 paths, verbose
    monte-heston-sim -c -v -C -k 11 -p 16

    # Reproducible run
    monte-heston-sim -c --seed 42

Exit status:
    0 on success and after -h, which prints this help and exits.
    1 on a usage error or any configuration, device, build, resource or
    execution failure.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import NoReturn, assert_never

from pydantic import BaseModel, ConfigDict

from hestonmc.backends import select_backend
from hestonmc.errors import (
    BindError,
    BuildError,
    ConfigurationError,
    DeviceError,
    ExecutionError,
    PipelineError,
    ReadbackError,
    ResourceError,
)
from hestonmc.models.device import DeviceKind
from hestonmc.models.numerical import Precision
from hestonmc.orchestrator import price_option
from hestonmc.parameters import (
    PayoffKind,
    SimulationParameters,
    build_simulation_parameters,
    path_count_from_log2,
)
from hestonmc.result import Failure, Result, Success
from hestonmc.statistics import format_report
from hestonmc.timing import format_timing
from hestonmc.validation import validate_model


__all__ = ["build_parser", "configure_logging", "describe_error", "main"]

logger = logging.getLogger("hestonmc")


class _Parser(argparse.ArgumentParser):
    """Usage errors exit with status 1 like every other configuration failure."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


class _LaneGroupOverride(BaseModel):
    lane_group: int = 0

    model_config = ConfigDict(frozen=True, extra="forbid")


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="monte-heston-sim",
        description="Price a European option under the Heston model by Monte-Carlo simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "-g",
        dest="lane_group",
        default="0",
        metavar="N",
        help="lanes per group (ignored unless 0 < N < device maximum)",
    )
    parser.add_argument("-c", dest="cpu", action="store_true", help="use a CPU device")
    parser.add_argument("-v", dest="verbose", action="store_true", help="verbose output")
    parser.add_argument("-i", dest="initial_price", metavar="S0", help="initial price (10)")
    parser.add_argument("-r", dest="r", metavar="R", help="drift (0.05)")
    parser.add_argument("-m", dest="mu", metavar="MU", help="mean reversion level (0.2)")
    parser.add_argument("-l", dest="lambda_", metavar="LAMBDA", help="mean reversion rate (1.2)")
    parser.add_argument("-s", dest="sigma", metavar="SIGMA", help="volatility of volatility (0.1)")
    parser.add_argument("-k", dest="strike", metavar="K", help="strike price (10)")
    parser.add_argument("-d", dest="divisions", metavar="STEPS", help="time steps per path (500)")
    parser.add_argument(
        "-p", dest="log2_paths", default="10", metavar="LOG2N", help="log2 of the path count (10)"
    )
    parser.add_argument(
        "-P",
        dest="payoff",
        action="store_const",
        const=PayoffKind.PUT,
        default=PayoffKind.PRICE,
        help="price a put option",
    )
    parser.add_argument(
        "-C", dest="payoff", action="store_const", const=PayoffKind.CALL, help="price a call option"
    )
    parser.add_argument("--seed", help="random seed (default: wall clock)")
    parser.add_argument(
        "--precision",
        choices=[precision.value for precision in Precision],
        default=Precision.float32.value,
        help="element type of the device buffers",
    )
    parser.add_argument(
        "--dump-payoffs", action="store_true", help="print every payoff before the summary"
    )
    return parser


def configure_logging(verbose: bool) -> None:
    """Route ``hestonmc`` log records to stdout, as plain lines.

    Verbose runs show INFO records; otherwise only warnings and errors.
    Calling again replaces the handler installed by the previous call.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    logger.propagate = False


def _lane_group(raw: str) -> Result[int, ConfigurationError]:
    match validate_model(_LaneGroupOverride, lane_group=raw):
        case Failure(error):
            return Failure(ConfigurationError(message=f"invalid lane group: {raw!r}", error=error))
        case Success(override):
            return Success(override.lane_group)


def _parameters(args: argparse.Namespace) -> Result[SimulationParameters, ConfigurationError]:
    return path_count_from_log2(args.log2_paths).and_then(
        lambda path_count: build_simulation_parameters(
            initial_price=args.initial_price,
            r=args.r,
            mu=args.mu,
            lambda_=args.lambda_,
            sigma=args.sigma,
            strike=args.strike,
            divisions=args.divisions,
            payoff=args.payoff,
            path_count=path_count,
            seed=args.seed,
            precision=args.precision,
        )
    )


def describe_error(error: PipelineError) -> str:
    """One diagnostic block for stderr."""
    match error:
        case ConfigurationError(message=message, error=validation):
            details = (
                [f"  {'.'.join(map(str, e['loc']))}: {e['msg']}" for e in validation.errors()]
                if validation is not None
                else []
            )
            return "\n".join([f"Error: {message}", *details])
        case DeviceError(message=message):
            return f"Error: {message}"
        case ResourceError(resource=resource, message=message):
            return f"Error: could not create {resource}: {message}"
        case BuildError(message=message, kernel_name=kernel_name, build_log=build_log):
            where = f" ({kernel_name})" if kernel_name else ""
            return f"Error: program build failed{where}: {message}\nBuild log:\n{build_log}"
        case BindError(kernel_name=kernel_name, message=message, position=position):
            where = f" argument {position}" if position is not None else ""
            return f"Error: cannot bind {kernel_name}{where}: {message}"
        case ExecutionError(stage=stage, message=message):
            return f"Error: {stage} failed: {message}"
        case ReadbackError(buffer=buffer, message=message):
            return f"Error: reading {buffer} buffer failed: {message}"
        case _:
            assert_never(error)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; returns the process exit status."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    match _lane_group(args.lane_group).and_then(
        lambda lane_group: _parameters(args).map(lambda params: (params, lane_group))
    ):
        case Failure(error):
            print(describe_error(error), file=sys.stderr)
            return 1
        case Success((params, lane_group)):
            pass

    kind = DeviceKind.CPU if args.cpu else DeviceKind.GPU
    match price_option(
        params,
        backend=select_backend(kind),
        lane_group=lane_group,
        dump_payoffs=args.dump_payoffs,
    ):
        case Failure(error):
            print(describe_error(error), file=sys.stderr)
            return 1
        case Success(run):
            if run.payoffs is not None:
                for payoff in run.payoffs:
                    print(f"{payoff:f}")
            print(format_report(run.band), end="")
            for label, seconds in run.timings:
                logger.info(format_timing(label, seconds))
            return 0
