# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

"""
Section grammars and the stream decoder.
File: section_stream/streaming/__init__.py
"""
