"""Filesystem helpers shared by the orchestrator and the CLI.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""
