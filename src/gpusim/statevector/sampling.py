# Copyright Amazon.com Inc. or its affiliates. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License"). You
# may not use this file except in compliance with the License. A copy of
# the License is located at
#
#     http://aws.amazon.com/apache2.0/
#
# or in the "license" file accompanying this file. This file is
# distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF
# ANY KIND, either express or implied. See the License for the specific
# language governing permissions and limitations under the License.

"""
Measurement sampling from a probability vector.

Basis-state indices are decoded with wire 0 as the most significant bit, the same
convention the kernels use.
"""

from __future__ import annotations

import logging
import numbers
from collections import Counter
from collections.abc import Sequence

import numpy as np

from gpusim.statevector import settings
from gpusim.statevector.errors import ConfigurationError, UnnormalizedStateError

logger = logging.getLogger(__name__)


def check_num_samples(num_samples) -> int:
    """Return `num_samples` as an int, rejecting negative and non-integer counts."""
    if isinstance(num_samples, bool) or not isinstance(num_samples, numbers.Integral):
        raise ConfigurationError(f"Number of samples must be an integer, got {num_samples!r}")
    if num_samples < 0:
        raise ConfigurationError(f"Number of samples must be non-negative, got {num_samples}")
    return int(num_samples)


def decode_basis_states(indices: np.ndarray, num_qubits: int) -> np.ndarray:
    """Expand basis-state indices into per-wire bits.

    Args:
        indices (np.ndarray): Basis-state indices.
        num_qubits (int): Register size.

    Returns:
        np.ndarray: `uint8` array of shape `(len(indices), num_qubits)`; column `w` is
        the bit of wire `w`.
    """
    shifts = np.arange(num_qubits - 1, -1, -1, dtype=np.int64)
    indices = np.asarray(indices, dtype=np.int64).reshape(-1, 1)
    return ((indices >> shifts) & 1).astype(np.uint8)


def marginal_probability(
    probabilities: np.ndarray,
    targets: Sequence[int] | None = None,
) -> np.ndarray:
    """Return the marginal probability of the computational basis states.

    The marginal probability is obtained by summing the probabilities on
    the unused qubits. If no targets are specified, then the probability
    of all basis states is returned.

    Args:
        probabilities (np.ndarray): The probability distribution to marginalize.
        targets (Sequence[int] | None): The qubits of the marginal distribution, in
            the order their bits should appear in the result.

    Returns:
        np.ndarray: The marginal probability distribution.
    """
    qubit_count = int(np.log2(len(probabilities)))

    if targets is None or np.array_equal(targets, range(qubit_count)):
        return probabilities

    targets = [int(t) for t in targets]
    unused_qubits = tuple(sorted(set(range(qubit_count)) - set(targets)))
    as_tensor = probabilities.reshape([2] * qubit_count)
    marginal = np.sum(as_tensor, axis=unused_qubits) if unused_qubits else as_tensor
    # Remaining axes are in ascending wire order; reorder them to match `targets`
    kept = sorted(targets)
    marginal = np.transpose(marginal, [kept.index(t) for t in targets])
    return marginal.reshape(-1)


class Sampler:
    """Draws i.i.d. measurement outcomes from a probability vector."""

    def __init__(
        self,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
        tolerance: float = settings.NORM_TOLERANCE,
    ):
        """
        Args:
            rng (np.random.Generator | None): Random source. Takes precedence over `seed`.
            seed (int | None): Seed for a new `np.random.default_rng`; system entropy
                is used when both `rng` and `seed` are None.
            tolerance (float): Largest allowed deviation of the total probability from 1.

        Raises:
            ConfigurationError: If `tolerance` is negative or NaN.
        """
        if not tolerance >= 0:
            raise ConfigurationError(
                f"Normalisation tolerance must be non-negative, got {tolerance!r}"
            )
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._tolerance = tolerance

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    @property
    def tolerance(self) -> float:
        return self._tolerance

    def reseed(self, seed: int | None = None) -> None:
        """Replace the random source with a freshly seeded generator."""
        self._rng = np.random.default_rng(seed)

    def cumulative_distribution(self, probabilities: np.ndarray) -> np.ndarray:
        """Normalised prefix sum of `probabilities`, computed in place on a float64 copy.

        Raises:
            UnnormalizedStateError: If the total mass is more than `tolerance` from 1.
        """
        cdf = np.array(probabilities, dtype=np.float64).reshape(-1)
        np.cumsum(cdf, out=cdf)
        total = cdf[-1]
        if not np.isfinite(total) or abs(total - 1.0) > self._tolerance:
            raise UnnormalizedStateError(
                f"Total probability {total!r} deviates from 1 by more than {self._tolerance}"
            )
        cdf /= total
        cdf[-1] = 1.0
        return cdf

    def sample(
        self,
        probabilities: np.ndarray,
        num_qubits: int,
        num_samples: int,
        rng: np.random.Generator | None = None,
    ) -> np.ndarray:
        """Draw `num_samples` outcomes.

        Args:
            probabilities (np.ndarray): Probability of each of the `2 ** num_qubits`
                basis states.
            num_qubits (int): Register size.
            num_samples (int): Number of shots.
            rng (np.random.Generator | None): Random source for this call only.

        Returns:
            np.ndarray: `uint8` array of shape `(num_samples, num_qubits)`.

        Raises:
            ConfigurationError: If `num_samples` is negative or the probability vector
                has the wrong length.
            UnnormalizedStateError: If the probabilities do not sum to 1 within tolerance.
        """
        num_samples = check_num_samples(num_samples)
        if len(probabilities) != 1 << num_qubits:
            raise ConfigurationError(
                f"Expected {1 << num_qubits} probabilities, got {len(probabilities)}"
            )
        cdf = self.cumulative_distribution(probabilities)
        if num_samples == 0:
            return np.zeros((0, num_qubits), dtype=np.uint8)

        uniforms = (rng if rng is not None else self._rng).random(num_samples)
        indices = np.searchsorted(cdf, uniforms, side="right")
        np.minimum(indices, cdf.size - 1, out=indices)
        logger.debug("Drew %d samples over %d basis states", num_samples, cdf.size)
        return decode_basis_states(indices, num_qubits)


def counts(samples: np.ndarray) -> Counter:
    """Histogram of sampled bit strings, e.g. Counter({"010": 12, ...})."""
    return Counter("".join(map(str, row)) for row in samples)
