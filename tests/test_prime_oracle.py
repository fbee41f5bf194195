import numpy as np
import pytest

from prime_oracle import (
    ALGORITHMS,
    MILLER,
    MR_DETERMINISTIC_BOUND,
    TRIAL,
    UnknownAlgorithmError,
    Verdict,
    classify,
    get_oracle,
    is_certified,
    is_prime,
    is_prime_miller,
    is_prime_trial,
)
from prime_sieve import sieve_of_eratosthenes

ORACLES = [is_prime_trial, is_prime_miller]


@pytest.mark.parametrize("oracle", ORACLES)
@pytest.mark.parametrize(
    "n, expected",
    [
        (2, True),
        (3, True),
        (7, True),
        (41, True),
        (109, True),
        (7919, True),
        (0, False),
        (1, False),
        (-1, False),
        (-7, False),
        (4, False),
        (9, False),
        (25, False),
        (8000, False),
        (561, False),  # Carmichael
        (2047, False),  # strong pseudoprime to base 2
        (999999999989, True),
        (999999999987, False),
    ],
)
def test_known_values(oracle, n, expected):
    assert oracle(n) is expected


@pytest.mark.parametrize("oracle", ORACLES)
def test_agrees_with_sieve(oracle):
    primes = set(sieve_of_eratosthenes(5000))
    for n in range(-5, 5001):
        assert oracle(n) == (n in primes), n


def test_trial_and_miller_agree_on_small_range():
    for n in range(20_000):
        assert is_prime_trial(n) == is_prime_miller(n), n


def test_trial_and_miller_agree_on_large_window():
    for n in range(10**9, 10**9 + 1000):
        assert is_prime_trial(n) == is_prime_miller(n), n


@pytest.mark.parametrize(
    "n",
    [
        3215031751,  # strong pseudoprime to bases 2, 3, 5 and 7
        25326001,  # strong pseudoprime to bases 2, 3 and 5
        3825123056546413051,  # strong pseudoprime to bases 2 through 31
    ],
)
def test_miller_rejects_strong_pseudoprimes(n):
    assert not is_prime_miller(n)


def test_miller_handles_values_past_64_bits():
    assert is_prime_miller(2**61 - 1)
    assert is_prime_miller(2**89 - 1)
    assert not is_prime_miller((2**61 - 1) * (2**31 - 1))


def test_bound_is_a_pseudoprime_for_the_witness_set():
    # the bound itself is composite yet passes every witness
    assert is_prime_miller(MR_DETERMINISTIC_BOUND)
    assert classify(MR_DETERMINISTIC_BOUND, MILLER) is Verdict.PROBABLE_PRIME


@pytest.mark.parametrize("oracle", ORACLES)
def test_idempotent(oracle):
    for n in (0, 1, 2, 25, 109, 7919, 999999999989):
        assert oracle(n) == oracle(n) == oracle(n)


@pytest.mark.parametrize("oracle", ORACLES)
def test_accepts_numpy_integers(oracle):
    assert oracle(np.int64(109))
    assert not oracle(np.int64(25))


@pytest.mark.parametrize("oracle", ORACLES)
@pytest.mark.parametrize("bad", [7.0, "7", None])
def test_rejects_non_integers(oracle, bad):
    with pytest.raises(TypeError):
        oracle(bad)


def test_get_oracle():
    assert get_oracle(TRIAL) is is_prime_trial
    assert get_oracle(MILLER) is is_prime_miller
    assert set(ALGORITHMS) == {TRIAL, MILLER}


@pytest.mark.parametrize("name", ["fermat", "", "Miller", "TRIAL"])
def test_unknown_algorithm_fails_fast(name):
    with pytest.raises(UnknownAlgorithmError):
        get_oracle(name)
    with pytest.raises(ValueError):
        is_prime(7, name)


def test_is_prime_default_algorithm():
    assert is_prime(109)
    assert not is_prime(25)
    assert is_prime(109, TRIAL)


def test_is_certified():
    assert is_certified(10**30, TRIAL)
    assert is_certified(2**64, MILLER)
    assert is_certified(MR_DETERMINISTIC_BOUND - 1, MILLER)
    assert not is_certified(MR_DETERMINISTIC_BOUND, MILLER)


def test_classify():
    assert classify(25) is Verdict.COMPOSITE
    assert classify(109) is Verdict.PRIME
    assert classify(109, TRIAL) is Verdict.PRIME
    assert classify(2**89 - 1, MILLER) is Verdict.PROBABLE_PRIME
    assert not Verdict.COMPOSITE
    assert Verdict.PRIME and Verdict.PROBABLE_PRIME


@pytest.mark.parametrize("oracle", ORACLES)
def test_bools_are_integers(oracle):
    assert oracle(True) is False
    assert oracle(False) is False
