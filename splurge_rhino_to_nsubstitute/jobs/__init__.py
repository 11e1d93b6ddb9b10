"""Jobs that make up the migration pipeline.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from .collector_job import CollectorJob
from .formatter_job import FormatterJob
from .output_job import OutputJob

__all__ = ["CollectorJob", "FormatterJob", "OutputJob"]
