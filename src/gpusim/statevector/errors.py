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
Exceptions raised by the GPU state-vector engine.

Every error is raised at the API boundary, before any copy or kernel launch is
issued, so a failed call leaves the device-resident vector untouched. Each class
also derives from the builtin exception a caller would naturally catch.
"""


class StateVectorError(Exception):
    """Base class for all state-vector engine errors."""


class SizeMismatchError(StateVectorError, ValueError):
    """Element or qubit counts disagree, or a wire index lies outside the register."""


class IncompatibleTypeError(StateVectorError, TypeError):
    """The numeric representations of two buffers differ (e.g. complex64 vs complex128)."""


class UnknownGateError(StateVectorError, KeyError):
    """A named operation is not registered in the dispatch table."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead
        return str(self.args[0]) if self.args else ""


class ConfigurationError(StateVectorError, ValueError):
    """Malformed call: wrong wire or parameter arity, repeated wires, ragged batches."""


class AllocationError(StateVectorError, MemoryError):
    """The accelerator could not satisfy a device allocation."""


class UnnormalizedStateError(StateVectorError, ArithmeticError):
    """Total probability mass is outside the configured tolerance of 1."""
