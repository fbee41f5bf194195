#!/usr/bin/env python3
"""
Sieve of Eratosthenes with three interchangeable backends.

  python : plain list of flags, no dependencies
  numpy  : vectorized strided clear on a bool array (default)
  torch  : strided clear on a tensor living on CUDA, Apple MPS or CPU

Every backend returns the primes <= limit in ascending order, and an empty
list for any limit below 2 (negative limits included).
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

SIEVE_BACKENDS = ("python", "numpy", "torch")
DEFAULT_SIEVE = "numpy"


class SieveBackendError(ValueError):
    """Raised for an unknown sieve backend or one whose library is missing."""


def sieve_of_eratosthenes(limit: int) -> list[int]:
    """Use the Sieve of Eratosthenes algorithm to find all prime numbers up to 'limit'."""
    if limit < 2:
        return []
    # Initialize a boolean array that indicates whether each number is prime
    is_prime = [True] * (limit + 1)
    p = 2

    while p * p <= limit:
        if is_prime[p]:
            for i in range(p * p, limit + 1, p):
                is_prime[i] = False
        p += 1

    # Collect all prime numbers
    return [p for p in range(2, limit + 1) if is_prime[p]]


def simple_sieve(limit: int) -> np.ndarray:
    """Classic sieve up to 'limit' (inclusive), returns primes as int64 numpy array."""
    if limit < 2:
        return np.array([], dtype=np.int64)
    is_prime = np.ones(limit + 1, dtype=bool)
    is_prime[:2] = False
    for p in range(2, int(limit ** 0.5) + 1):
        if is_prime[p]:
            is_prime[p * p : limit + 1 : p] = False
    return np.flatnonzero(is_prime).astype(np.int64)


def _torch_device(torch, prefer_gpu: bool):
    if prefer_gpu and torch.cuda.is_available():
        return torch.device("cuda")
    if prefer_gpu and torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")


def torch_sieve(limit: int, prefer_gpu: bool = True) -> list[int]:
    """Sieve on a torch tensor; only the surviving indices are copied back to the host."""
    if limit < 2:
        return []
    try:
        import torch
    except ImportError as exc:
        raise SieveBackendError(
            "the 'torch' sieve needs PyTorch; install the 'gpu' extra"
        ) from exc

    device = _torch_device(torch, prefer_gpu)
    logger.debug("torch sieve on %s up to %d", device, limit)

    # 1-byte mask: 1 = candidate prime
    mask = torch.ones(limit + 1, dtype=torch.uint8, device=device)
    mask[:2] = 0
    for p in range(2, int(limit ** 0.5) + 1):
        # The scalar read syncs with the device, but only sqrt(limit) times
        if mask[p].item():
            mask[p * p :: p] = 0

    idx = torch.nonzero(mask, as_tuple=False).squeeze(1)
    return idx.to("cpu").tolist()


def primes_upto(limit: int, backend: str = DEFAULT_SIEVE) -> tuple[int, ...]:
    """Return the immutable prime list for 'limit' as plain Python ints."""
    if backend == "python":
        primes = sieve_of_eratosthenes(limit)
    elif backend == "numpy":
        # .tolist() hands back Python ints, so p*p + 4*q*q can never wrap
        primes = simple_sieve(limit).tolist()
    elif backend == "torch":
        primes = torch_sieve(limit)
    else:
        raise SieveBackendError(
            f"unknown sieve backend {backend!r}; expected one of {', '.join(SIEVE_BACKENDS)}"
        )
    logger.debug("%s sieve found %d primes <= %d", backend, len(primes), limit)
    return tuple(primes)
