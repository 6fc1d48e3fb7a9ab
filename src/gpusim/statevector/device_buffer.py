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
Ownership of device memory for one amplitude vector.

A DeviceBuffer owns a fixed-length numba device array, the stream every copy on it
is issued to, and the id of the device it lives on. Host<->device and
device<->device transfers are validated here before they are enqueued.

Allocation and every transfer run inside `with cuda.gpus[device_id]:`, so buffers
on different devices can be used side by side in one thread.
"""

from __future__ import annotations

import logging

import numpy as np
from numba import cuda

from gpusim.statevector import settings
from gpusim.statevector.errors import (
    AllocationError,
    ConfigurationError,
    IncompatibleTypeError,
    SizeMismatchError,
)

logger = logging.getLogger(__name__)


class DeviceBuffer:
    """Fixed-length complex array in accelerator memory bound to one stream."""

    def __init__(
        self,
        length: int,
        dtype: np.dtype = settings.DEFAULT_DTYPE,
        device_id: int = settings.DEFAULT_DEVICE_ID,
        stream: cuda.stream | None = None,
    ):
        """
        Args:
            length (int): Number of complex elements to reserve.
            dtype (np.dtype): Element type, complex64 or complex128.
            device_id (int): Device the allocation lives on. Default 0.
            stream (cuda.stream | None): Stream to bind. A new stream is created
                when omitted.

        Raises:
            ConfigurationError: If `length` is not positive, `device_id` is negative,
                or `dtype` is not a supported complex type.
            AllocationError: If the runtime cannot satisfy the allocation.
        """
        dtype = np.dtype(dtype)
        if dtype not in settings.SUPPORTED_DTYPES:
            raise ConfigurationError(f"Unsupported element type {dtype}; use complex64 or complex128")
        if length <= 0:
            raise ConfigurationError(f"Buffer length must be positive, got {length}")
        if device_id < 0:
            raise ConfigurationError(f"Device id must be non-negative, got {device_id}")

        self._length = int(length)
        self._dtype = dtype
        self._device_id = device_id
        # Host arrays referenced by in-flight async transfers
        self._staging: list[np.ndarray] = []

        try:
            self._device = cuda.gpus[device_id]
        except IndexError:
            raise ConfigurationError(
                f"No device with id {device_id}; {len(cuda.gpus)} device(s) visible"
            ) from None
        except Exception as e:
            raise AllocationError(f"Could not access device {device_id}") from e

        try:
            with self._device:
                self._stream = stream if stream is not None else cuda.stream()
                self._data = cuda.device_array(
                    self._length, dtype=self._dtype, stream=self._stream
                )
        except Exception as e:
            raise AllocationError(
                f"Could not allocate {self._length} x {self._dtype} on device {device_id}"
            ) from e
        logger.debug(
            "Allocated %d bytes (%d x %s) on device %d",
            self.nbytes,
            self._length,
            self._dtype,
            device_id,
        )

    @property
    def length(self) -> int:
        """int: Number of complex elements in the buffer."""
        return self._length

    @property
    def dtype(self) -> np.dtype:
        """np.dtype: Element type of the buffer."""
        return self._dtype

    @property
    def nbytes(self) -> int:
        return self._length * self._dtype.itemsize

    @property
    def device_id(self) -> int:
        return self._device_id

    @property
    def device(self):
        """Context manager that makes this buffer's device current, e.g. `with buffer.device:`."""
        return self._device

    @property
    def data(self):
        """DeviceNDArray: The underlying numba device array."""
        if self._data is None:
            raise AllocationError("Device buffer has been freed")
        return self._data

    @property
    def stream(self):
        """cuda.stream: The stream every copy and kernel on this buffer is issued to."""
        return self._stream

    @stream.setter
    def stream(self, stream) -> None:
        # Drain work already queued on the old stream so ordering is kept across the switch
        self.synchronize()
        self._stream = stream
        logger.debug("Rebound device buffer on device %d to stream %s", self._device_id, stream)

    def synchronize(self) -> None:
        """Block until every operation issued on the bound stream has completed."""
        with self._device:
            self._stream.synchronize()
        self._staging.clear()

    def free(self) -> None:
        """Release the device allocation once queued work has drained."""
        if self._data is None:
            return
        self.synchronize()
        self._data = None
        logger.debug("Released device buffer of %d bytes on device %d", self.nbytes, self._device_id)

    def copy_host_to_device(self, source, async_copy: bool = False) -> None:
        """Copy host data into the buffer.

        Args:
            source (array-like): Host data of exactly `length` elements. It is coerced to
                a contiguous array of the buffer dtype.
            async_copy (bool): If True, return once the copy is enqueued. The copy is only
                guaranteed complete after `synchronize()` or a blocking operation.

        Raises:
            SizeMismatchError: If the element counts differ.
        """
        host = np.ascontiguousarray(source, dtype=self._dtype).reshape(-1)
        if host.size != self._length:
            raise SizeMismatchError(
                f"Sizes do not match for host and device data: {host.size} != {self._length}"
            )
        with self._device:
            self.data.copy_to_device(host, stream=self._stream)
        self._finish(host, async_copy, "host->device")

    def copy_device_to_host(self, destination: np.ndarray | None = None, async_copy: bool = False):
        """Copy the buffer into host memory.

        Args:
            destination (np.ndarray | None): Contiguous host array of `length` elements and
                the buffer dtype. A new array is allocated when omitted.
            async_copy (bool): If True, the returned array is only valid after `synchronize()`.

        Returns:
            np.ndarray: The host array holding (or about to hold) the amplitudes.

        Raises:
            SizeMismatchError: If `destination` has the wrong number of elements.
            IncompatibleTypeError: If `destination` has a different dtype.
        """
        if destination is None:
            destination = np.empty(self._length, dtype=self._dtype)
        else:
            if destination.size != self._length:
                raise SizeMismatchError(
                    f"Sizes do not match for device and host data: "
                    f"{self._length} != {destination.size}"
                )
            if destination.dtype != self._dtype:
                raise IncompatibleTypeError(
                    f"Host array type {destination.dtype} does not match device type {self._dtype}"
                )
            if not destination.flags["C_CONTIGUOUS"]:
                raise ConfigurationError("Host destination array must be C-contiguous")
        flat = destination.reshape(-1)
        with self._device:
            self.data.copy_to_host(flat, stream=self._stream)
        self._finish(flat, async_copy, "device->host")
        return destination

    def copy_device_to_device(self, source, async_copy: bool = False) -> None:
        """Copy another device allocation into this buffer.

        Args:
            source (DeviceBuffer | DeviceNDArray): Device data of the same length and dtype.
            async_copy (bool): If True, return once the copy is enqueued.

        Raises:
            SizeMismatchError: If the element counts differ.
            IncompatibleTypeError: If the element types differ.
        """
        source_data = source.data if isinstance(source, DeviceBuffer) else source
        if source_data.size != self._length:
            raise SizeMismatchError(
                f"Sizes do not match for device data: {source_data.size} != {self._length}"
            )
        if np.dtype(source_data.dtype) != self._dtype:
            raise IncompatibleTypeError(
                f"Data types are incompatible for device-device transfer: "
                f"{source_data.dtype} != {self._dtype}"
            )
        if isinstance(source, DeviceBuffer) and source.stream is not self._stream:
            # The source may still have writes queued on its own stream
            source.synchronize()
        # Unified addressing lets the copy read a source held on another device
        with self._device:
            self.data.copy_to_device(source_data, stream=self._stream)
        self._finish(None, async_copy, "device->device")

    def _finish(self, host: np.ndarray | None, async_copy: bool, direction: str) -> None:
        if async_copy:
            if host is not None:
                self._staging.append(host)
        else:
            self.synchronize()
        logger.debug(
            "Issued %s copy of %d elements (async=%s) on device %d",
            direction,
            self._length,
            async_copy,
            self._device_id,
        )
