#!/usr/bin/env python3
import logging
import math
import os
import sys

from errors import InvalidSampleCount, PiEstimationError
from monte_carlo import DEFAULT_SAMPLES, MIN_SAMPLES, PiRun, default_worker_count, validate_sample_count
from partition import POLICIES
from progress import ProgressReporter, TerminalView


def parse_sample_count(text):
    try:
        samples = int(text)
    except (TypeError, ValueError) as e:
        raise InvalidSampleCount(text, MIN_SAMPLES) from e
    return validate_sample_count(samples)


def configure_logging():
    level = logging.DEBUG if os.environ.get("PI_DEBUG") else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(threadName)s %(name)s: %(message)s")


def usage(program):
    print(f"Usage: {program} [samples] [policy] [seed]")
    print(f"Policies: {', '.join(POLICIES)}")
    sys.exit(1)


def print_result(result):
    print("Monte Carlo Pi Estimation")
    print(f"Pi estimate: {result.pi_estimate:.10f}")
    print(f"Actual pi:   {math.pi:.10f}")
    print(f"Deviation:   {result.error:.10f}")
    print(f"Total samples: {result.total}")
    print(f"Points inside circle: {result.hits}")
    print(f"Sampling took {result.elapsed * 1000:.2f}ms")
    print(f"Samples per second: {result.throughput:.2e}")
    print(f"Workers: {result.workers} ({result.chunks} chunks)")


def main(argv=None):
    argv = sys.argv if argv is None else argv
    if len(argv) > 4:
        usage(argv[0])

    configure_logging()

    samples = DEFAULT_SAMPLES
    if len(argv) > 1:
        try:
            samples = parse_sample_count(argv[1])
        except InvalidSampleCount as e:
            print(f"{e}. Using default of {DEFAULT_SAMPLES} samples.")

    policy = argv[2].lower() if len(argv) > 2 else "equal"
    if policy not in POLICIES:
        print(f"Unknown policy: {policy}")
        usage(argv[0])

    seed = None
    if len(argv) > 3:
        try:
            seed = int(argv[3])
        except ValueError:
            print(f"Seed must be an integer: {argv[3]}")
            usage(argv[0])

    workers = default_worker_count()
    print(f"Available workers: {workers}")

    run = PiRun(samples, workers=workers, policy=policy, seed=seed)
    try:
        if sys.stdout.isatty():
            with TerminalView() as view:
                result = run.run(ProgressReporter(run.snapshot, view))
        else:
            result = run.run()
    except PiEstimationError as e:
        print(f"Estimation failed: {e}")
        sys.exit(1)

    print_result(result)


if __name__ == "__main__":
    main()
