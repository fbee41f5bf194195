#!/usr/bin/env python3
"""
Primality oracle: trial division and deterministic Miller-Rabin.

Both predicates are pure functions of their argument, so workers can call them
concurrently without any locking. The strategy is picked once by name with
get_oracle(); an unknown name is an error, never a silent fallback. Both are
total over the integers: anything operator.index() accepts (bool and numpy
integers included) gets a verdict, and everything <= 1 is not prime.

Miller-Rabin uses the fixed witness set {2, 3, ..., 37}. It is exact for every
n below MR_DETERMINISTIC_BOUND (the smallest strong pseudoprime to all twelve
witnesses, ~3.2e23, comfortably above 2**64). At or above that bound a "prime"
answer is only probable; classify() reports it as Verdict.PROBABLE_PRIME.
"""

import enum
import math
import operator
from typing import Callable

TRIAL = "trial"
MILLER = "miller"
ALGORITHMS = (TRIAL, MILLER)
DEFAULT_ALGORITHM = MILLER

MR_BASES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37)
MR_DETERMINISTIC_BOUND = 318_665_857_834_031_151_167_461


class UnknownAlgorithmError(ValueError):
    """Raised when a primality algorithm name is not one of ALGORITHMS."""


class Verdict(enum.Enum):
    COMPOSITE = "composite"
    PRIME = "prime"
    PROBABLE_PRIME = "probable prime"

    def __bool__(self) -> bool:
        return self is not Verdict.COMPOSITE


def _as_int(n) -> int:
    # accepts anything integral (bool, numpy integers); floats and strings raise TypeError
    return operator.index(n)


def is_prime_trial(n: int) -> bool:
    """Trial division by 2, 3 and every 6k +/- 1 up to isqrt(n)."""
    n = _as_int(n)
    if n <= 1:
        return False
    if n <= 3:
        return True
    if n % 2 == 0 or n % 3 == 0:
        return False
    limit = math.isqrt(n)
    i = 5
    while i <= limit:
        if n % i == 0 or n % (i + 2) == 0:
            return False
        i += 6
    return True


def is_prime_miller(n: int) -> bool:
    """Miller-Rabin against MR_BASES; see is_certified() for when this is exact."""
    n = _as_int(n)
    if n < 2:
        return False
    if n == 2 or n == 3:
        return True
    if n % 2 == 0:
        return False

    # write n-1 as 2^s * d
    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1

    for a in MR_BASES:
        if a >= n - 1:
            break
        # three-argument pow works on unbounded ints, no intermediate can wrap
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


_ORACLES: dict[str, Callable[[int], bool]] = {
    TRIAL: is_prime_trial,
    MILLER: is_prime_miller,
}


def check_algorithm(name: str) -> str:
    if name not in _ORACLES:
        raise UnknownAlgorithmError(
            f"unknown primality algorithm {name!r}; expected one of {', '.join(ALGORITHMS)}"
        )
    return name


def get_oracle(name: str) -> Callable[[int], bool]:
    """Return the primality predicate registered under 'name'."""
    return _ORACLES[check_algorithm(name)]


def is_prime(n: int, algorithm: str = DEFAULT_ALGORITHM) -> bool:
    return get_oracle(algorithm)(n)


def is_certified(n: int, algorithm: str = DEFAULT_ALGORITHM) -> bool:
    """True when the oracle's answer for n is a proof rather than a probability."""
    check_algorithm(algorithm)
    if algorithm == TRIAL:
        return True
    return _as_int(n) < MR_DETERMINISTIC_BOUND


def classify(n: int, algorithm: str = DEFAULT_ALGORITHM) -> Verdict:
    if not get_oracle(algorithm)(n):
        return Verdict.COMPOSITE
    if is_certified(n, algorithm):
        return Verdict.PRIME
    return Verdict.PROBABLE_PRIME
