# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""The interfaces module contains the API interface for the core ptrchain
framework.

These interfaces should help developers supply their own memory readers
to the resolver, for instance one backed by a debugger or a remote agent.
"""

# Import the submodules we want people to be able to use without importing them themselves
# This will also avoid namespace issues, because people can use interfaces.layers to
# avoid clashing with the layers package
from ptrchain.framework.interfaces import layers
