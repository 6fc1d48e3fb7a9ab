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

from gpusim.statevector._version import __version__  # noqa: F401
from gpusim.statevector.device_buffer import DeviceBuffer  # noqa: F401
from gpusim.statevector.errors import (  # noqa: F401
    AllocationError,
    ConfigurationError,
    IncompatibleTypeError,
    SizeMismatchError,
    StateVectorError,
    UnknownGateError,
    UnnormalizedStateError,
)
from gpusim.statevector.gate_dispatch import (  # noqa: F401
    GATE_DESCRIPTORS,
    GateDescriptor,
    GateDispatcher,
    register_gate,
)
from gpusim.statevector.host_state_vector import HostStateVector  # noqa: F401
from gpusim.statevector.sampling import Sampler  # noqa: F401
from gpusim.statevector.state_vector import StateVectorCuda  # noqa: F401
