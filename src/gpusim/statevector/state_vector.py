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
Device-resident state vector.

`StateVectorCuda` owns one `DeviceBuffer` holding ``2 ** num_qubits`` amplitudes and
applies gates to it in place. Every public entry point validates its inputs before
any copy or kernel is enqueued, so a rejected call leaves the vector untouched.

Kernels and copies run on the buffer's stream in program order. Reading results
(`copy_device_to_host`, `probabilities`, `generate_samples`) synchronizes first,
unless an asynchronous copy was explicitly requested.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from gpusim.statevector import settings
from gpusim.statevector.device_buffer import DeviceBuffer
from gpusim.statevector.errors import (
    ConfigurationError,
    IncompatibleTypeError,
    SizeMismatchError,
)
from gpusim.statevector.gate_dispatch import (
    GateDispatcher,
    PreparedOperation,
    const_gates,
    ctrl_map,
    parametric_gates,
    validate_wires,
)
from gpusim.statevector.host_state_vector import HostStateVector
from gpusim.statevector.kernels import get_kernel_provider
from gpusim.statevector.sampling import Sampler, check_num_samples, marginal_probability

logger = logging.getLogger(__name__)


class StateVectorCuda:
    """
    Amplitude vector of an `num_qubits`-qubit register held in GPU memory.

    Wire 0 is the most significant bit of a basis-state index. For named gates with
    `k` control wires, the first `k` wires given are the controls.
    """

    def __init__(
        self,
        num_qubits: int,
        dtype: np.dtype = settings.DEFAULT_DTYPE,
        device_id: int = settings.DEFAULT_DEVICE_ID,
        stream=None,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
        dispatcher: GateDispatcher | None = None,
    ):
        r"""
        Args:
            num_qubits (int): Number of qubits. The vector holds `2 ** num_qubits` amplitudes
                whose content is undefined until `initialize` or a copy.
            dtype (np.dtype): complex64 or complex128. Default complex128.
            device_id (int): Device to allocate on.
            stream (cuda.stream | None): Stream to bind; a new one is created when omitted.
            rng (np.random.Generator | None): Random source used by `generate_samples`.
            seed (int | None): Seed for the sampler when `rng` is not given.
            dispatcher (GateDispatcher | None): Gate table to resolve names against.

        Raises:
            ConfigurationError: If `num_qubits` is negative or `dtype` unsupported.
            AllocationError: If the device allocation fails.
        """
        if isinstance(num_qubits, bool) or not isinstance(num_qubits, (int, np.integer)):
            raise ConfigurationError(f"Qubit count must be an integer, got {num_qubits!r}")
        if num_qubits < 0:
            raise ConfigurationError(f"Qubit count must be non-negative, got {num_qubits}")
        self._num_qubits = int(num_qubits)
        self._buffer = DeviceBuffer(1 << self._num_qubits, dtype, device_id, stream)
        self._kernels = get_kernel_provider(self._buffer.dtype)
        self._dispatcher = dispatcher or GateDispatcher()
        # Single precision accumulates rounding beyond the default tolerance
        tolerance = max(settings.NORM_TOLERANCE, 100 * np.finfo(self._buffer.dtype).eps)
        self._sampler = Sampler(rng=rng, seed=seed, tolerance=tolerance)

    @property
    def num_qubits(self) -> int:
        """int: The number of qubits in the register."""
        return self._num_qubits

    @property
    def length(self) -> int:
        """int: The number of amplitudes, always `2 ** num_qubits`."""
        return self._buffer.length

    @property
    def dtype(self) -> np.dtype:
        return self._buffer.dtype

    @property
    def device_id(self) -> int:
        return self._buffer.device_id

    @property
    def buffer(self) -> DeviceBuffer:
        return self._buffer

    @property
    def data(self):
        """DeviceNDArray: The device-resident amplitudes."""
        return self._buffer.data

    @property
    def stream(self):
        return self._buffer.stream

    @stream.setter
    def stream(self, stream) -> None:
        self._buffer.stream = stream

    @property
    def sampler(self) -> Sampler:
        return self._sampler

    @property
    def ctrl_map(self):
        """Mapping of gate name to required number of control wires."""
        return ctrl_map(self._dispatcher.table)

    @property
    def parametric_gates(self):
        """Mapping of parametric gate name to number of parameters."""
        return parametric_gates(self._dispatcher.table)

    @property
    def const_gates(self) -> frozenset[str]:
        return const_gates(self._dispatcher.table)

    def synchronize(self) -> None:
        """Block until every queued kernel and copy on this vector has completed."""
        self._buffer.synchronize()

    def initialize(self, async_copy: bool = False) -> None:
        """Set the vector to the computational basis state |0...0>."""
        host = np.zeros(self.length, dtype=self.dtype)
        host[0] = 1.0
        self._buffer.copy_host_to_device(host, async_copy)

    def copy_host_to_device(self, data, async_copy: bool = False) -> None:
        """Overwrite the device amplitudes with host data.

        Args:
            data (HostStateVector | array-like): Host amplitudes. A `HostStateVector` is
                checked by qubit count, anything else by element count.
            async_copy (bool): Return once the copy is enqueued.

        Raises:
            SizeMismatchError: If the sizes disagree.
        """
        if isinstance(data, HostStateVector):
            if data.num_qubits != self._num_qubits:
                raise SizeMismatchError(
                    f"Sizes do not match for host and device data: "
                    f"{data.num_qubits} != {self._num_qubits} qubits"
                )
            data = data.data
        else:
            data = np.asarray(data)
            if data.size != self.length:
                raise SizeMismatchError(
                    f"Sizes do not match for host and device data: {data.size} != {self.length}"
                )
        self._buffer.copy_host_to_device(data, async_copy)

    def copy_device_to_host(self, data=None, async_copy: bool = False) -> np.ndarray:
        """Copy the device amplitudes into host memory.

        Args:
            data (HostStateVector | np.ndarray | None): Destination. A new array is
                allocated when omitted.
            async_copy (bool): If True, the result is only valid after `synchronize()`.

        Returns:
            np.ndarray: The host array holding the amplitudes.

        Raises:
            SizeMismatchError: If the destination size disagrees.
            IncompatibleTypeError: If the destination dtype differs from the vector's.
        """
        if isinstance(data, HostStateVector):
            if data.num_qubits != self._num_qubits:
                raise SizeMismatchError(
                    f"Sizes do not match for device and host data: "
                    f"{self._num_qubits} != {data.num_qubits} qubits"
                )
            data = data.data
        return self._buffer.copy_device_to_host(data, async_copy)

    def copy_device_to_device(self, other: StateVectorCuda, async_copy: bool = False) -> None:
        """Overwrite this vector with the amplitudes of `other`.

        Raises:
            SizeMismatchError: If the qubit counts differ.
            IncompatibleTypeError: If the element types differ.
        """
        self._check_peer(other)
        self._buffer.copy_device_to_device(other.buffer, async_copy)

    def copy_to(self, other: StateVectorCuda, async_copy: bool = False) -> None:
        """Overwrite `other` with the amplitudes of this vector."""
        other.copy_device_to_device(self, async_copy)

    def update_data(self, other: StateVectorCuda, async_copy: bool = False) -> None:
        """Alias of `copy_device_to_device`."""
        self.copy_device_to_device(other, async_copy)

    def _check_peer(self, other: StateVectorCuda) -> None:
        if not isinstance(other, StateVectorCuda):
            raise IncompatibleTypeError(
                f"Expected a StateVectorCuda, got {type(other).__name__}"
            )
        if other.num_qubits != self._num_qubits:
            raise SizeMismatchError(
                f"Sizes do not match for device data: "
                f"{other.num_qubits} != {self._num_qubits} qubits"
            )
        if other.dtype != self.dtype:
            raise IncompatibleTypeError(
                f"Data types are incompatible for device-device transfer: "
                f"{other.dtype} != {self.dtype}"
            )

    def apply_operation(
        self,
        name: str,
        wires: Sequence[int],
        adjoint: bool = False,
        params: Sequence[float] | None = None,
        matrix=None,
    ) -> None:
        """Apply a gate in place.

        Args:
            name (str): Registered gate name. When `matrix` is given it is only a label.
            wires (Sequence[int]): Wires the gate acts on, controls first.
            adjoint (bool): Apply the conjugate transpose. Default False.
            params (Sequence[float] | None): Gate parameters.
            matrix (array-like | None): Explicit row-major `2 ** len(wires)` square matrix
                acting on all of `wires`, bypassing the named lookup.

        Raises:
            UnknownGateError: If `name` is not registered and no matrix is given.
            ConfigurationError: If the wire or parameter counts do not fit the gate.
            SizeMismatchError: If a wire lies outside the register.
        """
        if matrix is not None:
            op = self._dispatcher.prepare_matrix(
                matrix, wires, adjoint, self._num_qubits, self.dtype, label=name
            )
        else:
            op = self._dispatcher.prepare(
                name, wires, adjoint, params, self._num_qubits, self.dtype
            )
        self._launch(op)

    def apply_matrix(
        self,
        matrix,
        wires: Sequence[int],
        adjoint: bool = False,
        controls: Sequence[int] = (),
    ) -> None:
        """Apply an explicit matrix to `wires`, acting only where every control wire is 1."""
        op = self._dispatcher.prepare_matrix(
            matrix, wires, adjoint, self._num_qubits, self.dtype, controls=controls
        )
        self._launch(op)

    def apply_operations(
        self,
        names: Sequence[str],
        wires: Sequence[Sequence[int]],
        adjoints: Sequence[bool],
        params: Sequence[Sequence[float]] | None = None,
    ) -> None:
        """Apply a sequence of named gates; index `i` of each sequence is one operation.

        The whole batch is validated before the first gate is launched.

        Raises:
            ConfigurationError: If the sequences differ in length, or any member is
                malformed.
            UnknownGateError: If any name is not registered.
            SizeMismatchError: If any wire lies outside the register.
        """
        ops = self._dispatcher.prepare_batch(
            names, wires, adjoints, params, self._num_qubits, self.dtype
        )
        for op in ops:
            self._launch(op)

    def _launch(self, op: PreparedOperation) -> None:
        self._kernels.apply_matrix(
            self._buffer.data,
            op.matrix,
            op.targets,
            op.controls,
            self._num_qubits,
            op.adjoint,
            self._buffer.stream,
            self._buffer.device_id,
        )

    def probabilities(self, wires: Sequence[int] | None = None) -> np.ndarray:
        """Probabilities of the computational basis states, optionally marginalised.

        Args:
            wires (Sequence[int] | None): Wires to keep, in output bit order. All wires
                when omitted.

        Returns:
            np.ndarray: float64 probabilities on the host.
        """
        if wires is not None:
            wires = validate_wires(wires, self._num_qubits)
        self.synchronize()
        device_probs = self._kernels.probabilities(
            self._buffer.data, self._buffer.stream, self._buffer.device_id
        )
        with self._buffer.device:
            probs = device_probs.copy_to_host(stream=self._buffer.stream)
        self.synchronize()
        return marginal_probability(probs, wires)

    def generate_samples(
        self, num_samples: int, rng: np.random.Generator | None = None
    ) -> np.ndarray:
        """Draw measurement outcomes from the current state.

        Args:
            num_samples (int): Number of shots.
            rng (np.random.Generator | None): Random source for this call only; the
                vector's own sampler is used otherwise.

        Returns:
            np.ndarray: `uint8` array of shape `(num_samples, num_qubits)`; column `w`
            holds the outcome of wire `w`.

        Raises:
            ConfigurationError: If `num_samples` is negative or not an integer.
            UnnormalizedStateError: If the state's norm has drifted beyond tolerance.
        """
        num_samples = check_num_samples(num_samples)
        probs = self.probabilities()
        return self._sampler.sample(probs, self._num_qubits, num_samples, rng=rng)

    def free(self) -> None:
        """Release the device memory. The vector is unusable afterwards."""
        self._buffer.free()

    def __repr__(self) -> str:
        return (
            f"StateVectorCuda(num_qubits={self._num_qubits}, dtype={self.dtype}, "
            f"device_id={self.device_id})"
        )
