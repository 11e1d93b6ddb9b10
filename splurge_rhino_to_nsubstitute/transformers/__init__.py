"""libcst-based rewrite engine.

The engine resolves source API bindings on the original tree
(:mod:`.bindings`), classifies nodes (:mod:`.symbols`), rewrites call
chains bottom-up (:mod:`.rhino_transformer`) and settles per-block
obligations on the way out (:mod:`.block_reconciler`).

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from .bindings import Binding, BindingResolver, BindingTable
from .rhino_transformer import RewriteOutcome, RhinoToNSubstituteTransformer
from .symbols import PatternCatalogue, PatternTag, SymbolIdentity

__all__ = [
    "Binding",
    "BindingResolver",
    "BindingTable",
    "PatternCatalogue",
    "PatternTag",
    "RewriteOutcome",
    "RhinoToNSubstituteTransformer",
    "SymbolIdentity",
]
