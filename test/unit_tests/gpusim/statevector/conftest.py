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

import os

# Must run before numba is first imported
if os.environ.get("GPUSIM_TEST_REAL_GPU", "").lower() not in ("1", "true", "yes"):
    os.environ.setdefault("NUMBA_ENABLE_CUDASIM", "1")

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from gpusim.statevector import HostStateVector, StateVectorCuda  # noqa: E402


@pytest.fixture(params=[np.complex64, np.complex128], ids=["complex64", "complex128"])
def dtype(request):
    return np.dtype(request.param)


@pytest.fixture
def tolerance(dtype):
    return 1e-5 if dtype == np.complex64 else 1e-7


@pytest.fixture
def make_sv():
    """Build an initialized state vector, optionally seeded from host amplitudes."""
    created = []

    def _make(num_qubits, dtype=np.complex128, init_state=None, **kwargs):
        sv = StateVectorCuda(num_qubits, dtype=dtype, **kwargs)
        if init_state is None:
            sv.initialize()
        else:
            sv.copy_host_to_device(HostStateVector(np.asarray(init_state, dtype=dtype)))
        created.append(sv)
        return sv

    yield _make
    for sv in created:
        sv.free()


@pytest.fixture
def plus_state():
    """The uniform superposition over 3 wires."""
    return np.full(8, 1 / (2 * np.sqrt(2)), dtype=complex)


@pytest.fixture
def random_state():
    def _random(num_qubits, seed=7):
        rng = np.random.default_rng(seed)
        size = 2**num_qubits
        state = rng.random(size) + 1j * rng.random(size)
        return state / np.linalg.norm(state)

    return _random
