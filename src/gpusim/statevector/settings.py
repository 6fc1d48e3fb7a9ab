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
Runtime configuration for the GPU state-vector engine.

Values are read once, at import, from the environment:

    GPUSIM_DEVICE_ID             default device for new state vectors (0)
    GPUSIM_NORM_TOLERANCE        allowed drift of the total probability (1e-6)
    GPUSIM_THREADS_PER_BLOCK     threads per block for kernel launches (256)
    GPUSIM_MAX_BLOCKS_PER_GRID   upper bound on blocks per launch (65535)
"""

from __future__ import annotations

import os

import numpy as np

from gpusim.statevector.errors import ConfigurationError


def _env_int(name: str, default: int, minimum: int | None = None) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        result = int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e
    return _check_minimum(name, result, minimum)


def _env_float(name: str, default: float, minimum: float | None = None) -> float:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        result = float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e
    return _check_minimum(name, result, minimum)


def _check_minimum(name, value, minimum):
    if minimum is not None and not value >= minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {value!r}")
    return value


DEFAULT_DEVICE_ID = _env_int("GPUSIM_DEVICE_ID", 0, minimum=0)
NORM_TOLERANCE = _env_float("GPUSIM_NORM_TOLERANCE", 1e-6, minimum=0.0)
THREADS_PER_BLOCK = _env_int("GPUSIM_THREADS_PER_BLOCK", 256, minimum=1)
MAX_BLOCKS_PER_GRID = _env_int("GPUSIM_MAX_BLOCKS_PER_GRID", 65535, minimum=1)

# Compile-time size of the per-thread gather buffer in the matrix kernel.
MAX_TARGET_WIRES = 6
MAX_MATRIX_DIM = 1 << MAX_TARGET_WIRES

DEFAULT_DTYPE = np.dtype(np.complex128)
SUPPORTED_DTYPES = (np.dtype(np.complex64), np.dtype(np.complex128))
