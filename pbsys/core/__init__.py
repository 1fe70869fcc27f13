# SPDX-License-Identifier: MIT
"""Core build engine: projects, resolution, compilation and assembly."""
