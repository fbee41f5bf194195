#!/usr/bin/env python3
"""
Search for primes n = p^2 + 4q^2 with p, q prime and p, q <= LIMIT.

Green and Sawhney proved there are infinitely many such primes; this is an
empirical check over all prime pairs up to a bound, spread over every CPU core.

Examples:
  python prime_search.py --limit 1000
  python prime_search.py --limit 5000 --primetest trial --workers 4
  python prime_search.py --limit 20000 --sieve torch --quiet
"""

import argparse
import logging
import os
import sys

from prime_oracle import ALGORITHMS, DEFAULT_ALGORITHM, MR_DETERMINISTIC_BOUND
from prime_pairs import BACKENDS, DEFAULT_BACKEND, WorkerFailedError, search
from prime_sieve import DEFAULT_SIEVE, SIEVE_BACKENDS

logger = logging.getLogger("prime_search")

RULE = "-" * 67


def non_negative(value: str) -> int:
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Parallel search for primes of the form p^2 + 4q^2.")
    ap.add_argument("--limit", type=int, default=1000,
                    help="Upper bound for the primes p and q (default: 1000).")
    ap.add_argument("--primetest", "--algorithm", dest="algorithm", choices=ALGORITHMS,
                    default=DEFAULT_ALGORITHM,
                    help=f"Primality test for n: 'trial' or 'miller' (default: {DEFAULT_ALGORITHM}).")
    ap.add_argument("--workers", type=non_negative, default=0,
                    help="Number of workers (default: os.cpu_count()).")
    ap.add_argument("--backend", choices=BACKENDS, default=DEFAULT_BACKEND,
                    help=f"Run workers as processes or threads (default: {DEFAULT_BACKEND}).")
    ap.add_argument("--sieve", choices=SIEVE_BACKENDS, default=DEFAULT_SIEVE,
                    help=f"Sieve implementation (default: {DEFAULT_SIEVE}; torch needs the 'gpu' extra).")
    ap.add_argument("--queue-size", type=non_negative, default=0,
                    help="Job queue capacity (default: number of primes).")
    ap.add_argument("--certified-only", action="store_true",
                    help=f"Refuse a miller run with candidates >= {MR_DETERMINISTIC_BOUND:,}.")
    ap.add_argument("--quiet", action="store_true", help="Only print the summary, not every match.")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return ap


def print_row(result) -> None:
    print(f"{result.p:<10d} | {result.q:<10d} | {result.n:<25d} | Found!")


def main(argv=None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    workers = args.workers or os.cpu_count() or 1
    print(f"Starting with limit={args.limit}, workers={workers}, "
          f"primetest='{args.algorithm}', backend='{args.backend}', sieve='{args.sieve}'")
    print(RULE)
    if not args.quiet:
        print(f"{'p':<10} | {'q':<10} | {'n = p^2 + 4q^2':<25} | Check")

    try:
        report = search(
            args.limit,
            algorithm=args.algorithm,
            workers=workers,
            backend=args.backend,
            sieve=args.sieve,
            queue_size=args.queue_size or None,
            certified_only=args.certified_only,
            on_result=None if args.quiet else print_row,
        )
    except ValueError as exc:
        ap.error(str(exc))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr, flush=True)
        return 130
    except WorkerFailedError as exc:
        logger.error("search aborted: %s", exc)
        print(f"\nSearch failed: {exc}", file=sys.stderr, flush=True)
        return 1

    print(RULE)
    if report.primes == 0:
        print(f"No primes found up to {args.limit}.")
    print(f"Search finished. {report.count} special primes found "
          f"among {report.pairs:,} pairs of {report.primes:,} primes.")
    if not report.certified:
        print("Note: some values exceed the deterministic Miller-Rabin range and are probable primes.")
    print(f"\nTotal elapsed time: {report.elapsed:.3f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
