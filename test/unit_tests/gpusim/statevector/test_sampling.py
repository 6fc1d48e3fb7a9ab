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

import numpy as np
import pytest

from gpusim.statevector import ConfigurationError, Sampler, UnnormalizedStateError
from gpusim.statevector.sampling import counts, decode_basis_states, marginal_probability

_EXPECTED_PROBABILITIES = [
    0.687573,
    0.013842,
    0.089279,
    0.001797,
    0.180036,
    0.003624,
    0.023377,
    0.000471,
]


def rotated_state(make_sv, dtype=np.complex128, seed=None):
    alpha, beta, gamma = 0.7, 0.5, 0.2
    sv = make_sv(3, dtype, seed=seed)
    sv.apply_operations(
        ["RX", "RY", "RX", "RY", "RX", "RY"],
        [[0], [0], [1], [1], [2], [2]],
        [False] * 6,
        [[alpha], [alpha], [beta], [beta], [gamma], [gamma]],
    )
    return sv


def estimate(samples):
    num_qubits = samples.shape[1]
    weights = 1 << np.arange(num_qubits - 1, -1, -1)
    indices = samples.astype(np.int64) @ weights
    return np.bincount(indices, minlength=1 << num_qubits) / len(samples)


def test_probabilities_of_rotated_state(make_sv, dtype):
    sv = rotated_state(make_sv, dtype)
    assert np.allclose(sv.probabilities(), _EXPECTED_PROBABILITIES, atol=1e-5)


def test_sample_frequencies_converge(make_sv, dtype):
    sv = rotated_state(make_sv, dtype, seed=1234)
    samples = sv.generate_samples(100000)
    assert samples.shape == (100000, 3)
    assert samples.dtype == np.uint8
    assert np.allclose(estimate(samples), _EXPECTED_PROBABILITIES, atol=0.05)


def test_samples_reproducible_with_seed(make_sv):
    first = rotated_state(make_sv, seed=99).generate_samples(500)
    second = rotated_state(make_sv, seed=99).generate_samples(500)
    assert np.array_equal(first, second)


def test_call_rng_overrides_sampler(make_sv):
    sv = rotated_state(make_sv, seed=1)
    first = sv.generate_samples(200, rng=np.random.default_rng(5))
    second = sv.generate_samples(200, rng=np.random.default_rng(5))
    assert np.array_equal(first, second)


def test_basis_state_always_sampled(make_sv):
    init_state = np.zeros(8)
    init_state[0b101] = 1
    sv = make_sv(3, init_state=init_state)
    samples = sv.generate_samples(50)
    assert np.array_equal(samples, np.tile([1, 0, 1], (50, 1)))


def test_zero_samples(make_sv):
    samples = make_sv(2).generate_samples(0)
    assert samples.shape == (0, 2)


def test_negative_samples(make_sv):
    with pytest.raises(ConfigurationError):
        make_sv(2).generate_samples(-1)


@pytest.mark.parametrize("num_samples", [10.0, True, "10", None])
def test_non_integer_samples(make_sv, num_samples):
    with pytest.raises(ConfigurationError):
        make_sv(2).generate_samples(num_samples)


def test_numpy_integer_samples(make_sv):
    assert make_sv(2).generate_samples(np.int64(5)).shape == (5, 2)


def test_unnormalized_state_rejected(make_sv):
    sv = make_sv(2, init_state=[1, 1, 0, 0])
    with pytest.raises(UnnormalizedStateError):
        sv.generate_samples(10)


def test_zero_state_vector_rejected(make_sv):
    sv = make_sv(1, init_state=[0, 0])
    with pytest.raises(UnnormalizedStateError):
        sv.generate_samples(10)


class _AlmostOneRng:
    """Uniform source pinned to the largest double below 1."""

    def random(self, size):
        return np.full(size, np.nextafter(1.0, 0.0))


class TestSampler:
    def test_small_drift_is_renormalised(self):
        sampler = Sampler(seed=0, tolerance=1e-3)
        cdf = sampler.cumulative_distribution([0.5, 0.5004])
        assert cdf[-1] == 1.0
        assert np.isclose(cdf[0], 0.5 / 1.0004)

    def test_drift_beyond_tolerance(self):
        with pytest.raises(UnnormalizedStateError):
            Sampler(tolerance=1e-6).cumulative_distribution([0.5, 0.6])

    def test_non_finite_rejected(self):
        with pytest.raises(UnnormalizedStateError):
            Sampler().cumulative_distribution([np.nan, 1.0])

    def test_zero_probability_outcomes_never_drawn(self):
        samples = Sampler(seed=3).sample(np.array([0.0, 0.5, 0.0, 0.5]), 2, 1000)
        indices = samples[:, 0] * 2 + samples[:, 1]
        assert set(indices) <= {1, 3}

    def test_trailing_zero_probabilities_never_drawn(self):
        # 0.1 summed ten times falls one ulp short of 1
        probabilities = np.array([0.1] * 10 + [0.0] * 6)
        sampler = Sampler(rng=_AlmostOneRng(), tolerance=1e-6)
        cdf = sampler.cumulative_distribution(probabilities)
        assert np.all(cdf[9:] == 1.0)
        samples = sampler.sample(probabilities, 4, 50)
        indices = samples @ (1 << np.arange(3, -1, -1))
        assert np.all(indices == 9)

    @pytest.mark.parametrize("num_samples", [2.5, False])
    def test_non_integer_samples(self, num_samples):
        with pytest.raises(ConfigurationError):
            Sampler().sample(np.full(4, 0.25), 2, num_samples)

    @pytest.mark.parametrize("tolerance", [-1e-6, np.nan])
    def test_invalid_tolerance(self, tolerance):
        with pytest.raises(ConfigurationError):
            Sampler(tolerance=tolerance)

    def test_wrong_length(self):
        with pytest.raises(ConfigurationError):
            Sampler().sample(np.array([0.5, 0.5]), 2, 10)

    def test_reseed(self):
        sampler = Sampler(seed=7)
        first = sampler.sample(np.full(4, 0.25), 2, 100)
        sampler.reseed(7)
        assert np.array_equal(first, sampler.sample(np.full(4, 0.25), 2, 100))

    def test_explicit_rng(self):
        rng = np.random.default_rng(0)
        assert Sampler(rng=rng, seed=1).rng is rng


@pytest.mark.parametrize(
    "indices, num_qubits, expected",
    [
        ([0], 1, [[0]]),
        ([1, 2], 2, [[0, 1], [1, 0]]),
        ([5, 6], 3, [[1, 0, 1], [1, 1, 0]]),
    ],
)
def test_decode_basis_states(indices, num_qubits, expected):
    decoded = decode_basis_states(np.array(indices), num_qubits)
    assert decoded.dtype == np.uint8
    assert np.array_equal(decoded, expected)


@pytest.mark.parametrize(
    "targets, expected",
    [
        (None, [0.1, 0.2, 0.3, 0.4]),
        ([0, 1], [0.1, 0.2, 0.3, 0.4]),
        ([0], [0.3, 0.7]),
        ([1], [0.4, 0.6]),
        ([1, 0], [0.1, 0.3, 0.2, 0.4]),
    ],
)
def test_marginal_probability(targets, expected):
    probabilities = np.array([0.1, 0.2, 0.3, 0.4])
    assert np.allclose(marginal_probability(probabilities, targets), expected)


def test_counts():
    samples = np.array([[0, 1], [0, 1], [1, 1]], dtype=np.uint8)
    assert counts(samples) == {"01": 2, "11": 1}
