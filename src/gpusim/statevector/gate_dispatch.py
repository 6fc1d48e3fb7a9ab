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
Gate-name dispatch.

The dispatch table maps a gate name to its `GateDescriptor`: how many of the
leading wires are controls, how many wires the matrix acts on, and how many
parameters it takes. The table is data; adding a gate never touches the kernels.
"""

from __future__ import annotations

import numbers
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np

from gpusim.statevector import gate_matrices, settings
from gpusim.statevector.errors import (
    ConfigurationError,
    SizeMismatchError,
    UnknownGateError,
)


@dataclass(frozen=True)
class GateDescriptor:
    """Static description of a named gate.

    Attributes:
        name (str): Name used for dispatch.
        num_controls (int): Number of leading wires acting as controls.
        num_targets (int): Number of wires the target matrix acts on.
        num_params (int): Number of real parameters. Zero means the gate is constant.
        matrix_fn (Callable | None): Builds the target block from the parameters. When
            None, the block is taken from `gate_matrices`.
    """

    name: str
    num_controls: int
    num_targets: int
    num_params: int = 0
    matrix_fn: Callable[..., np.ndarray] | None = None

    def __post_init__(self):
        if self.num_controls < 0 or self.num_targets < 1 or self.num_params < 0:
            raise ConfigurationError(f"Invalid arities for gate '{self.name}'")
        if self.num_targets > settings.MAX_TARGET_WIRES:
            raise ConfigurationError(
                f"Gate '{self.name}' acts on {self.num_targets} target wires; "
                f"at most {settings.MAX_TARGET_WIRES} are supported"
            )

    @property
    def num_wires(self) -> int:
        return self.num_controls + self.num_targets

    @property
    def parametric(self) -> bool:
        return self.num_params > 0

    def target_matrix(self, params: Sequence[float], dtype: np.dtype) -> np.ndarray:
        if self.matrix_fn is None:
            return gate_matrices.get_matrix(self.name, params, dtype, include_controls=False)
        return np.asarray(self.matrix_fn(*params), dtype=dtype)


_REGISTRY: dict[str, GateDescriptor] = {
    d.name: d
    for d in (
        GateDescriptor("Identity", 0, 1),
        GateDescriptor("PauliX", 0, 1),
        GateDescriptor("PauliY", 0, 1),
        GateDescriptor("PauliZ", 0, 1),
        GateDescriptor("Hadamard", 0, 1),
        GateDescriptor("T", 0, 1),
        GateDescriptor("S", 0, 1),
        GateDescriptor("RX", 0, 1, 1),
        GateDescriptor("RY", 0, 1, 1),
        GateDescriptor("RZ", 0, 1, 1),
        GateDescriptor("Rot", 0, 1, 3),
        GateDescriptor("PhaseShift", 0, 1, 1),
        GateDescriptor("ControlledPhaseShift", 1, 1, 1),
        GateDescriptor("CNOT", 1, 1),
        GateDescriptor("SWAP", 0, 2),
        GateDescriptor("CZ", 1, 1),
        GateDescriptor("CRX", 1, 1, 1),
        GateDescriptor("CRY", 1, 1, 1),
        GateDescriptor("CRZ", 1, 1, 1),
        GateDescriptor("CRot", 1, 1, 3),
        GateDescriptor("CSWAP", 1, 2),
        GateDescriptor("Toffoli", 2, 1),
    )
}

GATE_DESCRIPTORS = MappingProxyType(_REGISTRY)


def ctrl_map(table=GATE_DESCRIPTORS) -> MappingProxyType:
    """Gate name -> number of control wires."""
    return MappingProxyType({name: d.num_controls for name, d in table.items()})


def const_gates(table=GATE_DESCRIPTORS) -> frozenset[str]:
    """Names of the gates that take no parameters."""
    return frozenset(name for name, d in table.items() if not d.parametric)


def parametric_gates(table=GATE_DESCRIPTORS) -> MappingProxyType:
    """Gate name -> number of parameters, for parametric gates only."""
    return MappingProxyType({name: d.num_params for name, d in table.items() if d.parametric})


def register_gate(descriptor: GateDescriptor, overwrite: bool = False) -> None:
    """Add a gate to the global table. Dispatchers created afterwards can apply it.

    Raises:
        ConfigurationError: If the name is taken and `overwrite` is False, or the
            descriptor has no matrix source.
    """
    if descriptor.name in _REGISTRY and not overwrite:
        raise ConfigurationError(f"Gate '{descriptor.name}' is already registered")
    if descriptor.matrix_fn is None and descriptor.name not in gate_matrices.available_gates():
        raise ConfigurationError(f"Gate '{descriptor.name}' needs a matrix_fn")
    _REGISTRY[descriptor.name] = descriptor


@dataclass(frozen=True)
class PreparedOperation:
    """A validated operation, ready to launch."""

    name: str
    matrix: np.ndarray
    targets: tuple[int, ...]
    controls: tuple[int, ...]
    adjoint: bool


def validate_wires(wires: Sequence[int], num_qubits: int) -> tuple[int, ...]:
    """Check a wire list against a register of `num_qubits` qubits.

    Raises:
        ConfigurationError: If the list is empty, holds a non-integer, or repeats a wire.
        SizeMismatchError: If a wire lies outside `[0, num_qubits)`.
    """
    if isinstance(wires, numbers.Integral):
        wires = (wires,)
    wires = tuple(wires)
    if not wires:
        raise ConfigurationError("An operation needs at least one wire")
    for w in wires:
        if isinstance(w, bool) or not isinstance(w, numbers.Integral):
            raise ConfigurationError(f"Wire indices must be integers, got {w!r}")
        if not 0 <= w < num_qubits:
            raise SizeMismatchError(
                f"Wire {w} is outside a register of {num_qubits} qubit(s)"
            )
    if len(set(wires)) != len(wires):
        raise ConfigurationError(f"Wires must be distinct, got {wires}")
    return tuple(int(w) for w in wires)


class GateDispatcher:
    """Resolves named or explicit-matrix operations into `PreparedOperation`s.

    The dispatch table is snapshotted at construction; later calls to
    `register_gate` do not affect an existing dispatcher.
    """

    def __init__(self, table=None):
        self._table = MappingProxyType(dict(GATE_DESCRIPTORS if table is None else table))

    @property
    def table(self) -> MappingProxyType:
        return self._table

    def descriptor(self, name: str) -> GateDescriptor:
        try:
            return self._table[name]
        except KeyError:
            raise UnknownGateError(f"Operation '{name}' is not registered") from None

    def prepare(
        self,
        name: str,
        wires: Sequence[int],
        adjoint: bool,
        params: Sequence[float] | None,
        num_qubits: int,
        dtype: np.dtype = settings.DEFAULT_DTYPE,
    ) -> PreparedOperation:
        """Resolve a named operation.

        The first `num_controls` wires are controls; the remaining wires are targets.

        Raises:
            UnknownGateError: If `name` is not registered.
            ConfigurationError: If the wire or parameter counts are wrong.
            SizeMismatchError: If a wire is out of range.
        """
        descriptor = self.descriptor(name)
        wires = validate_wires(wires, num_qubits)
        if len(wires) != descriptor.num_wires:
            raise ConfigurationError(
                f"'{name}' expects {descriptor.num_controls} control and "
                f"{descriptor.num_targets} target wire(s), got {len(wires)} wire(s)"
            )
        params = () if params is None else tuple(params)
        if len(params) != descriptor.num_params:
            raise ConfigurationError(
                f"'{name}' takes {descriptor.num_params} parameter(s), got {len(params)}"
            )
        matrix = descriptor.target_matrix(params, dtype)
        dim = 1 << descriptor.num_targets
        if matrix.shape != (dim, dim):
            raise ConfigurationError(
                f"Matrix for '{name}' has shape {matrix.shape}, expected {(dim, dim)}"
            )
        k = descriptor.num_controls
        return PreparedOperation(name, matrix, wires[k:], wires[:k], bool(adjoint))

    def prepare_matrix(
        self,
        matrix,
        wires: Sequence[int],
        adjoint: bool,
        num_qubits: int,
        dtype: np.dtype = settings.DEFAULT_DTYPE,
        controls: Sequence[int] = (),
        label: str = "matrix",
    ) -> PreparedOperation:
        """Resolve an explicit matrix acting on `wires`, optionally controlled.

        Raises:
            ConfigurationError: If the matrix is not square over `wires`, or `wires` and
                `controls` overlap.
            SizeMismatchError: If a wire is out of range.
        """
        targets = validate_wires(wires, num_qubits)
        controls = validate_wires(controls, num_qubits) if len(controls) else ()
        if set(targets) & set(controls):
            raise ConfigurationError(
                f"Control wires {controls} overlap target wires {targets}"
            )
        if len(targets) > settings.MAX_TARGET_WIRES:
            raise ConfigurationError(
                f"At most {settings.MAX_TARGET_WIRES} target wires are supported, "
                f"got {len(targets)}"
            )
        matrix = np.asarray(matrix, dtype=dtype)
        dim = 1 << len(targets)
        if matrix.ndim == 1 and matrix.size == dim * dim:
            matrix = matrix.reshape(dim, dim)
        if matrix.shape != (dim, dim):
            raise ConfigurationError(
                f"Matrix of shape {matrix.shape} cannot act on {len(targets)} wire(s)"
            )
        return PreparedOperation(label, matrix, targets, controls, bool(adjoint))

    def prepare_batch(
        self,
        names: Sequence[str],
        wires: Sequence[Sequence[int]],
        adjoints: Sequence[bool],
        params: Sequence[Sequence[float]] | None,
        num_qubits: int,
        dtype: np.dtype = settings.DEFAULT_DTYPE,
    ) -> list[PreparedOperation]:
        """Resolve a batch of named operations, all or nothing.

        Raises:
            ConfigurationError: If the sequences differ in length, plus anything
                `prepare` raises for any member.
        """
        if params is None:
            params = [()] * len(names)
        lengths = {len(names), len(wires), len(adjoints), len(params)}
        if len(lengths) != 1:
            raise ConfigurationError(
                "Batched operation sequences must have equal lengths: "
                f"names={len(names)}, wires={len(wires)}, "
                f"adjoints={len(adjoints)}, params={len(params)}"
            )
        return [
            self.prepare(name, w, adj, p, num_qubits, dtype)
            for name, w, adj, p in zip(names, wires, adjoints, params)
        ]
