"""Run the CLI with ``python -m splurge_rhino_to_nsubstitute``.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from .cli import main

if __name__ == "__main__":
    main()
