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

from __future__ import annotations

import numpy as np

from gpusim.statevector import settings
from gpusim.statevector.errors import ConfigurationError, SizeMismatchError


class HostStateVector:
    """
    Host-resident amplitude storage exchanged with `StateVectorCuda`.

    The data is held as a flat, contiguous complex array whose length must be a
    power of two matching `num_qubits`.
    """

    def __init__(self, data, num_qubits: int | None = None):
        """
        Args:
            data (array-like): Complex amplitudes.
            num_qubits (int | None): Expected qubit count. Inferred from the length
                when omitted.

        Raises:
            SizeMismatchError: If the length is not `2 ** num_qubits`.
        """
        array = np.ascontiguousarray(data).reshape(-1)
        if not np.issubdtype(array.dtype, np.complexfloating):
            array = array.astype(settings.DEFAULT_DTYPE)
        if num_qubits is None:
            num_qubits = max(int(array.size).bit_length() - 1, 0)
        if num_qubits < 0:
            raise ConfigurationError(f"Qubit count must be non-negative, got {num_qubits}")
        if array.size != 1 << num_qubits:
            raise SizeMismatchError(
                f"Host data of length {array.size} does not describe {num_qubits} qubits"
            )
        self._data = array
        self._num_qubits = num_qubits

    @classmethod
    def zero_state(
        cls, num_qubits: int, dtype: np.dtype = settings.DEFAULT_DTYPE
    ) -> HostStateVector:
        """The computational basis state |0...0> on `num_qubits` qubits."""
        data = np.zeros(1 << num_qubits, dtype=dtype)
        data[0] = 1
        return cls(data, num_qubits)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def length(self) -> int:
        return self._data.size

    @property
    def num_qubits(self) -> int:
        return self._num_qubits

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self._data
        return self._data.astype(dtype)

    def __repr__(self) -> str:
        return f"HostStateVector(num_qubits={self._num_qubits}, dtype={self._data.dtype})"
