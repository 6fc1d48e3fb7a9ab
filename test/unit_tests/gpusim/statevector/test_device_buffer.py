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
from numba import cuda

from gpusim.statevector import (
    AllocationError,
    ConfigurationError,
    DeviceBuffer,
    IncompatibleTypeError,
    SizeMismatchError,
)


@pytest.fixture
def host_data(dtype):
    rng = np.random.default_rng(42)
    return (rng.standard_normal(16) + 1j * rng.standard_normal(16)).astype(dtype)


@pytest.mark.parametrize("async_copy", [False, True])
def test_round_trip_is_bit_identical(dtype, host_data, async_copy):
    buffer = DeviceBuffer(16, dtype)
    buffer.copy_host_to_device(host_data, async_copy=async_copy)
    result = buffer.copy_device_to_host(async_copy=async_copy)
    buffer.synchronize()
    assert result.dtype == dtype
    assert result.tobytes() == host_data.tobytes()


def test_copy_into_destination(dtype, host_data):
    buffer = DeviceBuffer(16, dtype)
    buffer.copy_host_to_device(host_data)
    destination = np.zeros(16, dtype=dtype)
    returned = buffer.copy_device_to_host(destination)
    assert returned is destination
    assert np.array_equal(destination, host_data)


def test_host_data_is_cast_to_buffer_type():
    buffer = DeviceBuffer(4, np.complex64)
    buffer.copy_host_to_device([1, 0, 0, 0])
    result = buffer.copy_device_to_host()
    assert result.dtype == np.complex64
    assert np.array_equal(result, [1, 0, 0, 0])


def test_properties():
    buffer = DeviceBuffer(8, np.complex64)
    assert buffer.length == 8
    assert buffer.dtype == np.complex64
    assert buffer.nbytes == 64
    assert buffer.device_id == 0
    assert buffer.data.shape == (8,)
    assert buffer.stream is not None


@pytest.mark.parametrize("size", [15, 17])
def test_host_to_device_size_mismatch(dtype, size):
    buffer = DeviceBuffer(16, dtype)
    with pytest.raises(SizeMismatchError):
        buffer.copy_host_to_device(np.zeros(size, dtype=dtype))


def test_device_to_host_size_mismatch(dtype):
    buffer = DeviceBuffer(16, dtype)
    with pytest.raises(SizeMismatchError):
        buffer.copy_device_to_host(np.zeros(8, dtype=dtype))


def test_device_to_host_type_mismatch():
    buffer = DeviceBuffer(4, np.complex128)
    with pytest.raises(IncompatibleTypeError):
        buffer.copy_device_to_host(np.zeros(4, dtype=np.complex64))


def test_device_to_host_requires_contiguous_destination():
    buffer = DeviceBuffer(4, np.complex128)
    destination = np.zeros(8, dtype=np.complex128)[::2]
    with pytest.raises(ConfigurationError):
        buffer.copy_device_to_host(destination)


@pytest.mark.parametrize("async_copy", [False, True])
def test_device_to_device(dtype, host_data, async_copy):
    source = DeviceBuffer(16, dtype)
    source.copy_host_to_device(host_data)
    target = DeviceBuffer(16, dtype)
    target.copy_device_to_device(source, async_copy=async_copy)
    target.synchronize()
    assert target.copy_device_to_host().tobytes() == host_data.tobytes()


def test_device_to_device_from_raw_array(host_data, dtype):
    target = DeviceBuffer(16, dtype)
    target.copy_device_to_device(cuda.to_device(host_data))
    assert np.array_equal(target.copy_device_to_host(), host_data)


def test_device_to_device_size_mismatch(dtype):
    with pytest.raises(SizeMismatchError):
        DeviceBuffer(16, dtype).copy_device_to_device(DeviceBuffer(8, dtype))


def test_device_to_device_type_mismatch():
    with pytest.raises(IncompatibleTypeError):
        DeviceBuffer(4, np.complex128).copy_device_to_device(DeviceBuffer(4, np.complex64))


def test_failed_copy_leaves_buffer_unchanged(dtype, host_data):
    buffer = DeviceBuffer(16, dtype)
    buffer.copy_host_to_device(host_data)
    with pytest.raises(SizeMismatchError):
        buffer.copy_host_to_device(np.ones(4, dtype=dtype))
    assert np.array_equal(buffer.copy_device_to_host(), host_data)


def test_stream_rebind(dtype, host_data):
    buffer = DeviceBuffer(16, dtype)
    buffer.copy_host_to_device(host_data, async_copy=True)
    new_stream = cuda.stream()
    buffer.stream = new_stream
    assert buffer.stream is new_stream
    assert np.array_equal(buffer.copy_device_to_host(), host_data)


def test_explicit_stream_is_used():
    stream = cuda.stream()
    buffer = DeviceBuffer(2, stream=stream)
    assert buffer.stream is stream


@pytest.mark.parametrize(
    "length, dtype, device_id",
    [
        (0, np.complex128, 0),
        (-4, np.complex128, 0),
        (4, np.float64, 0),
        (4, np.int32, 0),
        (4, np.complex128, -1),
    ],
)
def test_invalid_configuration(length, dtype, device_id):
    with pytest.raises(ConfigurationError):
        DeviceBuffer(length, dtype, device_id)


def test_allocation_failure(monkeypatch):
    def fail(*args, **kwargs):
        raise MemoryError("out of device memory")

    monkeypatch.setattr(cuda, "device_array", fail)
    with pytest.raises(AllocationError) as excinfo:
        DeviceBuffer(1 << 10)
    assert isinstance(excinfo.value, MemoryError)
    assert isinstance(excinfo.value.__cause__, MemoryError)


def test_use_after_free():
    buffer = DeviceBuffer(4)
    buffer.free()
    buffer.free()
    with pytest.raises(AllocationError):
        buffer.copy_host_to_device(np.zeros(4))


def test_unknown_device():
    with pytest.raises(ConfigurationError, match="No device"):
        DeviceBuffer(4, device_id=len(cuda.gpus))


def test_device_context_is_reentrant(host_data):
    buffer = DeviceBuffer(16, host_data.dtype)
    with buffer.device:
        buffer.copy_host_to_device(host_data)
        assert np.array_equal(buffer.copy_device_to_host(), host_data)


@pytest.mark.skipif(len(cuda.gpus) < 2, reason="needs two devices")
def test_buffers_on_two_devices(host_data):
    first = DeviceBuffer(16, host_data.dtype, device_id=0)
    second = DeviceBuffer(16, host_data.dtype, device_id=1)
    first.copy_host_to_device(host_data)
    second.copy_device_to_device(first)
    # Using the first buffer again must not depend on which device was touched last
    first.copy_host_to_device(np.zeros(16, dtype=host_data.dtype))
    assert np.array_equal(second.copy_device_to_host(), host_data)
    assert not np.any(first.copy_device_to_host())
