# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module initializes the necessary components for the provenator package."""

import os

# The version of this package. There's no comprehensive, official list of other
# magic constants, so we stick with this one only for now.
__version__ = "0.1.0"

# The path to the Provenator package.
PROVENATOR_PATH = os.path.dirname(os.path.abspath(__file__))
