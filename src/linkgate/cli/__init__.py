# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""LinkGate command-line interface."""
