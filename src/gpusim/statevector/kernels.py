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
CUDA kernels operating on device-resident amplitude vectors.

Bit ordering: wire ``w`` of an ``n``-qubit register is bit ``n - 1 - w`` of the basis
index, so wire 0 is the most significant bit. Gate matrices use the same rule over
their own wire list.

The matrix kernel is the single indexing path for every gate. Control wires only
contribute a mask; the per-gate specialisation is entirely in the matrix uploaded.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence

import numpy as np
from numba import cuda

from gpusim.statevector import settings
from gpusim.statevector.errors import ConfigurationError

logger = logging.getLogger(__name__)

_MAX_MATRIX_DIM = settings.MAX_MATRIX_DIM
_MATRIX_CACHE_ENTRIES = 256


def _get_launch_config(total_size: int) -> tuple[int, int]:
    """Blocks and threads for a grid-stride loop over `total_size` work items."""
    if settings.THREADS_PER_BLOCK < 1 or settings.MAX_BLOCKS_PER_GRID < 1:
        raise ConfigurationError(
            "Launch limits must be positive: "
            f"THREADS_PER_BLOCK={settings.THREADS_PER_BLOCK}, "
            f"MAX_BLOCKS_PER_GRID={settings.MAX_BLOCKS_PER_GRID}"
        )
    threads = min(settings.THREADS_PER_BLOCK, max(total_size, 1))
    blocks = min((total_size + threads - 1) // threads, settings.MAX_BLOCKS_PER_GRID)
    return max(blocks, 1), threads


@cuda.jit(device=True)
def _insert_zero_bits(index, sorted_bits, count):
    """Spread `index` so that a 0 sits at each bit position in `sorted_bits` (ascending)."""
    for j in range(count):
        bit = sorted_bits[j]
        low = index & ((1 << bit) - 1)
        index = ((index >> bit) << (bit + 1)) | low
    return index


def _build_apply_matrix_kernel(scalar_type):
    @cuda.jit
    def apply_matrix_kernel(
        state, matrix, target_bits, offsets, control_mask, adjoint, outer_size
    ):
        """Left-multiply every controlled target block of `state` by `matrix` in place."""
        scratch = cuda.local.array(_MAX_MATRIX_DIM, scalar_type)
        dim = offsets.shape[0]
        n_targets = target_bits.shape[0]

        idx = cuda.grid(1)
        stride = cuda.gridsize(1)
        for k in range(idx, outer_size, stride):
            base = _insert_zero_bits(k, target_bits, n_targets)
            if (base & control_mask) != control_mask:
                continue

            for c in range(dim):
                scratch[c] = state[base | offsets[c]]

            for r in range(dim):
                if adjoint:
                    acc = matrix[r].conjugate() * scratch[0]
                    for c in range(1, dim):
                        acc += matrix[c * dim + r].conjugate() * scratch[c]
                else:
                    acc = matrix[r * dim] * scratch[0]
                    for c in range(1, dim):
                        acc += matrix[r * dim + c] * scratch[c]
                state[base | offsets[r]] = acc

    return apply_matrix_kernel


@cuda.jit
def _probabilities_kernel(state, out, size):
    idx = cuda.grid(1)
    stride = cuda.gridsize(1)
    for i in range(idx, size, stride):
        amp = state[i]
        out[i] = amp.real * amp.real + amp.imag * amp.imag


class _DeviceMatrixCache:
    """Device-resident copies of recently used gate matrices, keyed by content."""

    def __init__(self, max_entries: int = _MATRIX_CACHE_ENTRIES):
        self._cache = {}
        self._access_count = {}
        self._max_entries = max_entries
        self._lock = threading.Lock()

    def get_or_upload(self, matrix: np.ndarray, device_id: int):
        # Blocking upload: cached matrices may later be read from any stream
        key = (device_id, matrix.shape[0], matrix.tobytes())
        with self._lock:
            if key in self._cache:
                self._access_count[key] += 1
                return self._cache[key]
            if len(self._cache) >= self._max_entries:
                self._evict_least_used()
            device_matrix = cuda.to_device(matrix)
            self._cache[key] = device_matrix
            self._access_count[key] = 1
            return device_matrix

    def _evict_least_used(self):
        min_key = min(self._access_count, key=self._access_count.get)
        del self._cache[min_key]
        del self._access_count[min_key]

    def clear(self):
        with self._lock:
            self._cache.clear()
            self._access_count.clear()

    def __len__(self):
        return len(self._cache)


class KernelProvider:
    """
    Precision-specific kernels behind one interface.

    The state-vector core owns a provider for its element type and never touches a
    kernel directly; providers are shared per dtype through `get_kernel_provider`.
    """

    def __init__(self, dtype: np.dtype):
        self._dtype = np.dtype(dtype)
        self._apply_matrix_kernel = _build_apply_matrix_kernel(self._dtype.type)
        self._matrix_cache = _DeviceMatrixCache()

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    def apply_matrix(
        self,
        state,
        matrix: np.ndarray,
        targets: Sequence[int],
        controls: Sequence[int],
        num_qubits: int,
        adjoint: bool,
        stream,
        device_id: int = 0,
    ) -> None:
        """Enqueue the in-place application of `matrix` to `state` on `stream`.

        Args:
            state (DeviceNDArray): Amplitudes, length `2 ** num_qubits`.
            matrix (np.ndarray): Square matrix over `targets`, `2 ** len(targets)` wide.
            targets (Sequence[int]): Target wires, first wire most significant in `matrix`.
            controls (Sequence[int]): Wires that must all read 1 for the block to change.
            num_qubits (int): Register size.
            adjoint (bool): Apply the conjugate transpose of `matrix` instead.
            stream (cuda.stream): Stream to launch on.
            device_id (int): Device of `state`, used to key the matrix cache.

        Inputs are assumed validated by the caller.
        """
        n_targets = len(targets)
        dim = 1 << n_targets
        bits = [num_qubits - 1 - w for w in targets]

        offsets = np.zeros(dim, dtype=np.int64)
        for c in range(dim):
            offset = 0
            for j, bit in enumerate(bits):
                if (c >> (n_targets - 1 - j)) & 1:
                    offset |= 1 << bit
            offsets[c] = offset

        control_mask = 0
        for w in controls:
            control_mask |= 1 << (num_qubits - 1 - w)

        host_matrix = np.ascontiguousarray(matrix, dtype=self._dtype).reshape(-1)
        outer_size = 1 << (num_qubits - n_targets)
        blocks, threads = _get_launch_config(outer_size)
        logger.debug(
            "Launching matrix kernel on device %d: targets=%s controls=%s adjoint=%s "
            "grid=(%d, %d)",
            device_id,
            tuple(targets),
            tuple(controls),
            adjoint,
            blocks,
            threads,
        )
        with cuda.gpus[device_id]:
            device_matrix = self._matrix_cache.get_or_upload(host_matrix, device_id)
            device_bits = cuda.to_device(np.array(sorted(bits), dtype=np.int64), stream=stream)
            device_offsets = cuda.to_device(offsets, stream=stream)
            self._apply_matrix_kernel[blocks, threads, stream](
                state,
                device_matrix,
                device_bits,
                device_offsets,
                np.int64(control_mask),
                bool(adjoint),
                np.int64(outer_size),
            )

    def probabilities(self, state, stream, device_id: int = 0):
        """Enqueue |a_i|^2 for every amplitude; returns a float64 array on `device_id`."""
        size = state.shape[0]
        blocks, threads = _get_launch_config(size)
        with cuda.gpus[device_id]:
            out = cuda.device_array(size, dtype=np.float64, stream=stream)
            _probabilities_kernel[blocks, threads, stream](state, out, np.int64(size))
        return out

    def clear_cache(self) -> None:
        """Drop every cached device matrix."""
        self._matrix_cache.clear()


_providers: dict[np.dtype, KernelProvider] = {}
_providers_lock = threading.Lock()


def get_kernel_provider(dtype: np.dtype) -> KernelProvider:
    """Shared `KernelProvider` for the given element type."""
    dtype = np.dtype(dtype)
    with _providers_lock:
        if dtype not in _providers:
            _providers[dtype] = KernelProvider(dtype)
        return _providers[dtype]


def clear_matrix_caches() -> None:
    """Clear the device matrix cache of every provider created so far."""
    with _providers_lock:
        for provider in _providers.values():
            provider.clear_cache()
