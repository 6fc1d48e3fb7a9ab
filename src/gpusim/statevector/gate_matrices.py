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
Dense matrices for the named gates understood by the dispatcher.

Matrices are row-major with the first wire of the gate as the most significant bit
of the row/column index. Non-parametric matrices are built once and cached;
callers receive copies so the cache cannot be mutated.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache

import numpy as np
from scipy.linalg import block_diag

from gpusim.statevector import settings
from gpusim.statevector.errors import ConfigurationError, UnknownGateError

_INV_SQRT2 = 1.0 / np.sqrt(2.0)


def identity() -> np.ndarray:
    return np.eye(2, dtype=complex)


def pauli_x() -> np.ndarray:
    return np.array([[0, 1], [1, 0]], dtype=complex)


def pauli_y() -> np.ndarray:
    return np.array([[0, -1j], [1j, 0]], dtype=complex)


def pauli_z() -> np.ndarray:
    return np.array([[1, 0], [0, -1]], dtype=complex)


def hadamard() -> np.ndarray:
    return np.array([[1, 1], [1, -1]], dtype=complex) * _INV_SQRT2


def s() -> np.ndarray:
    return np.array([[1, 0], [0, 1j]], dtype=complex)


def t() -> np.ndarray:
    return np.array([[1, 0], [0, np.exp(1j * np.pi / 4)]], dtype=complex)


def swap() -> np.ndarray:
    return np.array(
        [[1, 0, 0, 0], [0, 0, 1, 0], [0, 1, 0, 0], [0, 0, 0, 1]], dtype=complex
    )


def rx(angle: float) -> np.ndarray:
    c = np.cos(angle / 2)
    s_ = np.sin(angle / 2)
    return np.array([[c, -1j * s_], [-1j * s_, c]], dtype=complex)


def ry(angle: float) -> np.ndarray:
    c = np.cos(angle / 2)
    s_ = np.sin(angle / 2)
    return np.array([[c, -s_], [s_, c]], dtype=complex)


def rz(angle: float) -> np.ndarray:
    return np.array(
        [[np.exp(-1j * angle / 2), 0], [0, np.exp(1j * angle / 2)]], dtype=complex
    )


def phase_shift(angle: float) -> np.ndarray:
    return np.array([[1, 0], [0, np.exp(1j * angle)]], dtype=complex)


def rot(phi: float, theta: float, omega: float) -> np.ndarray:
    """Arbitrary rotation RZ(omega) RY(theta) RZ(phi)."""
    c = np.cos(theta / 2)
    s_ = np.sin(theta / 2)
    return np.array(
        [
            [np.exp(-0.5j * (phi + omega)) * c, -np.exp(0.5j * (phi - omega)) * s_],
            [np.exp(-0.5j * (phi - omega)) * s_, np.exp(0.5j * (phi + omega)) * c],
        ],
        dtype=complex,
    )


def controlled_matrix(matrix: np.ndarray, num_controls: int = 1) -> np.ndarray:
    """Returns the controlled form of the given matrix

    Each control wire takes the direct sum :math:`I_n \\oplus U_n`, so the matrix acts
    when every control reads 1. Control wires precede the target wires in the
    index ordering of the result.

    Args:
        matrix (np.ndarray): The matrix to control.
        num_controls (int): Number of control wires to prepend. Default 1.

    Returns:
        np.ndarray: The controlled form of the matrix.
    """
    new_matrix = matrix
    for _ in range(num_controls):
        new_matrix = block_diag(np.eye(len(new_matrix)), new_matrix)
    return new_matrix


# name -> (target-block builder, number of parameters, number of control wires)
_BUILDERS = {
    "Identity": (identity, 0, 0),
    "PauliX": (pauli_x, 0, 0),
    "PauliY": (pauli_y, 0, 0),
    "PauliZ": (pauli_z, 0, 0),
    "Hadamard": (hadamard, 0, 0),
    "T": (t, 0, 0),
    "S": (s, 0, 0),
    "SWAP": (swap, 0, 0),
    "RX": (rx, 1, 0),
    "RY": (ry, 1, 0),
    "RZ": (rz, 1, 0),
    "PhaseShift": (phase_shift, 1, 0),
    "Rot": (rot, 3, 0),
    "CNOT": (pauli_x, 0, 1),
    "CZ": (pauli_z, 0, 1),
    "CSWAP": (swap, 0, 1),
    "Toffoli": (pauli_x, 0, 2),
    "ControlledPhaseShift": (phase_shift, 1, 1),
    "CRX": (rx, 1, 1),
    "CRY": (ry, 1, 1),
    "CRZ": (rz, 1, 1),
    "CRot": (rot, 3, 1),
}


def available_gates() -> frozenset[str]:
    """frozenset[str]: Names this source can build matrices for."""
    return frozenset(_BUILDERS)


@lru_cache()
def _constant(name: str, num_controls: int) -> np.ndarray:
    builder = _BUILDERS[name][0]
    matrix = controlled_matrix(builder(), num_controls)
    matrix.setflags(write=False)
    return matrix


def get_matrix(
    name: str,
    params: Sequence[float] = (),
    dtype: np.dtype = settings.DEFAULT_DTYPE,
    include_controls: bool = True,
) -> np.ndarray:
    """Return the dense matrix of a named gate.

    Args:
        name (str): Registered gate name, e.g. "RX" or "Toffoli".
        params (Sequence[float]): Gate parameters, in the gate's declared order.
        dtype (np.dtype): Element type of the returned matrix.
        include_controls (bool): If False, return only the block acting on the target
            wires, which is what the kernels consume. Default True.

    Returns:
        np.ndarray: A fresh, writable, row-major square matrix.

    Raises:
        UnknownGateError: If `name` is not known to the source.
        ConfigurationError: If the number of parameters is wrong.
    """
    try:
        builder, num_params, num_controls = _BUILDERS[name]
    except KeyError:
        raise UnknownGateError(f"No matrix is defined for gate '{name}'") from None
    params = tuple(params)
    if len(params) != num_params:
        raise ConfigurationError(
            f"Gate '{name}' takes {num_params} parameter(s), got {len(params)}"
        )
    controls = num_controls if include_controls else 0
    if num_params == 0:
        return np.array(_constant(name, controls), dtype=dtype)
    return np.asarray(
        controlled_matrix(builder(*(float(p) for p in params)), controls), dtype=dtype
    )
