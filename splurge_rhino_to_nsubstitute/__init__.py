"""splurge_rhino_to_nsubstitute package.

Submodules are imported lazily on attribute access so that importing
the package stays cheap and free of import cycles.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

__version__ = "2025.0.4"
__author__ = "Jim Schilling"
__description__ = "Automated Rhino Mocks to NSubstitute mock syntax migration tool"

__all__ = [
    "main",
    "migrate",
    "MigrationOrchestrator",
    "PipelineContext",
    "MigrationConfig",
    "Result",
    "ResultStatus",
    "EventBus",
    "LoggingSubscriber",
    "Step",
    "Task",
    "Job",
    "Pipeline",
    "RhinoToNSubstituteTransformer",
    "RewriteOutcome",
    # Exceptions
    "MigrationError",
    "ParseError",
    "TransformationError",
    "TransformationValidationError",
    "ScopeInvariantError",
    "ValidationError",
    "ConfigurationError",
]

_LAZY_ATTRIBUTES = {
    "migrate": "splurge_rhino_to_nsubstitute.main",
    "MigrationOrchestrator": "splurge_rhino_to_nsubstitute.migration_orchestrator",
    "PipelineContext": "splurge_rhino_to_nsubstitute.context",
    "MigrationConfig": "splurge_rhino_to_nsubstitute.context",
    "Result": "splurge_rhino_to_nsubstitute.result",
    "ResultStatus": "splurge_rhino_to_nsubstitute.result",
    "EventBus": "splurge_rhino_to_nsubstitute.events",
    "LoggingSubscriber": "splurge_rhino_to_nsubstitute.events",
    "Step": "splurge_rhino_to_nsubstitute.pipeline",
    "Task": "splurge_rhino_to_nsubstitute.pipeline",
    "Job": "splurge_rhino_to_nsubstitute.pipeline",
    "Pipeline": "splurge_rhino_to_nsubstitute.pipeline",
    "RhinoToNSubstituteTransformer": "splurge_rhino_to_nsubstitute.transformers",
    "RewriteOutcome": "splurge_rhino_to_nsubstitute.transformers",
    "MigrationError": "splurge_rhino_to_nsubstitute.exceptions",
    "ParseError": "splurge_rhino_to_nsubstitute.exceptions",
    "TransformationError": "splurge_rhino_to_nsubstitute.exceptions",
    "TransformationValidationError": "splurge_rhino_to_nsubstitute.exceptions",
    "ScopeInvariantError": "splurge_rhino_to_nsubstitute.exceptions",
    "ValidationError": "splurge_rhino_to_nsubstitute.exceptions",
    "ConfigurationError": "splurge_rhino_to_nsubstitute.exceptions",
}

_LAZY_MODULES = {
    "main": "splurge_rhino_to_nsubstitute.main",
    "cli": "splurge_rhino_to_nsubstitute.cli",
}


def __getattr__(name: str):
    """Import the submodule that provides ``name`` on first access."""
    import importlib

    if name in _LAZY_MODULES:
        return importlib.import_module(_LAZY_MODULES[name])
    if name not in _LAZY_ATTRIBUTES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(importlib.import_module(_LAZY_ATTRIBUTES[name]), name)


def __dir__():
    return sorted(list(globals().keys()) + __all__)
