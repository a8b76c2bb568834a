# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

"""
Display timeline built from decoder output, raw deltas and lifecycle events.
File: section_stream/timeline/__init__.py
"""
