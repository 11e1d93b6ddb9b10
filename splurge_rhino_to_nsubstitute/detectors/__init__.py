"""AST based detection of Rhino Mocks style test files.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from .rhino_detector import RhinoMocksFileDetector

__all__ = ["RhinoMocksFileDetector"]
