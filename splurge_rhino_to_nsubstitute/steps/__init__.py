"""Pipeline steps.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from .format_steps import FormatCodeStep, ValidateGeneratedCodeStep
from .output_steps import WriteOutputStep
from .parse_steps import GenerateCodeStep, ParseSourceStep, RewriteMocksStep

__all__ = [
    "ParseSourceStep",
    "RewriteMocksStep",
    "GenerateCodeStep",
    "FormatCodeStep",
    "ValidateGeneratedCodeStep",
    "WriteOutputStep",
]
