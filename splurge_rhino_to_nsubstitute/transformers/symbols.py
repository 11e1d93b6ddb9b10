"""Symbol identities, the source API table and the pattern catalogue.

The Rhino Mocks style API is described declaratively: each type lists
its members, what kind of member each one is and which API type the
member produces. The binding resolver walks this table to attach a
:class:`SymbolIdentity` to call and attribute nodes, and the
:class:`PatternCatalogue` maps identities to :class:`PatternTag` values.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

DEFAULT_SOURCE_MODULE = "rhino_mocks"
DEFAULT_TARGET_MODULE = "nsubstitute"


class MemberKind(Enum):
    METHOD = "method"
    PROPERTY = "property"
    FIELD = "field"


@dataclass(frozen=True)
class SymbolIdentity:
    """Resolved identity of a member of the source API.

    Equality and hashing use the name, declaring type and declaring
    module only; ``kind`` is descriptive.
    """

    member_name: str
    declaring_type: str
    declaring_module: str
    kind: MemberKind = field(default=MemberKind.METHOD, compare=False)

    @property
    def is_method(self) -> bool:
        return self.kind is MemberKind.METHOD


@dataclass(frozen=True)
class ApiMember:
    kind: MemberKind
    result_type: str | None = None


MOCK_REPOSITORY = "MockRepository"
EXTENSIONS = "RhinoMocksExtensions"
METHOD_OPTIONS = "IMethodOptions"
REPEAT = "IRepeat"
ARG = "Arg"
IS_ARG = "IsArg"
OUT_REF_DUMMY = "OutRefArgDummy"

_METHOD = MemberKind.METHOD
_PROPERTY = MemberKind.PROPERTY

SOURCE_API: dict[str, dict[str, ApiMember]] = {
    MOCK_REPOSITORY: {
        "GenerateMock": ApiMember(_METHOD),
        "GenerateStub": ApiMember(_METHOD),
    },
    EXTENSIONS: {
        "Expect": ApiMember(_METHOD, METHOD_OPTIONS),
        "Stub": ApiMember(_METHOD, METHOD_OPTIONS),
        "AssertWasCalled": ApiMember(_METHOD),
        "AssertWasNotCalled": ApiMember(_METHOD),
        "VerifyAllExpectations": ApiMember(_METHOD),
    },
    METHOD_OPTIONS: {
        "Return": ApiMember(_METHOD, METHOD_OPTIONS),
        "Throw": ApiMember(_METHOD, METHOD_OPTIONS),
        "IgnoreArguments": ApiMember(_METHOD, METHOD_OPTIONS),
        "OutRef": ApiMember(_METHOD, METHOD_OPTIONS),
        "PropertyBehavior": ApiMember(_METHOD, METHOD_OPTIONS),
        "WhenCalled": ApiMember(_METHOD, METHOD_OPTIONS),
        "Repeat": ApiMember(_PROPERTY, REPEAT),
    },
    REPEAT: {
        "Once": ApiMember(_METHOD, METHOD_OPTIONS),
        "Twice": ApiMember(_METHOD, METHOD_OPTIONS),
        "Times": ApiMember(_METHOD, METHOD_OPTIONS),
        "AtLeastOnce": ApiMember(_METHOD, METHOD_OPTIONS),
        "Any": ApiMember(_METHOD, METHOD_OPTIONS),
        "Never": ApiMember(_METHOD, METHOD_OPTIONS),
    },
    ARG: {
        "Is": ApiMember(_PROPERTY, IS_ARG),
        "Out": ApiMember(_METHOD, OUT_REF_DUMMY),
        "Matches": ApiMember(_METHOD),
    },
    IS_ARG: {
        "Anything": ApiMember(_PROPERTY),
        "Null": ApiMember(_PROPERTY),
        "NotNull": ApiMember(_PROPERTY),
        "Equal": ApiMember(_METHOD),
        "Same": ApiMember(_METHOD),
    },
    OUT_REF_DUMMY: {
        "Dummy": ApiMember(MemberKind.FIELD),
    },
}

# Names a test module imports from the source module.
EXPORTED_TYPES: tuple[str, ...] = (MOCK_REPOSITORY, ARG)

# Option types a test may keep in a local variable; a name assigned from
# one of them keeps its type.
LOCAL_OPTION_TYPES: tuple[str, ...] = (METHOD_OPTIONS, REPEAT)

# Property whose value is an IRepeat even when its receiver is untyped.
REPEAT_PROPERTY = "Repeat"


class PatternTag(Enum):
    """Source-idiom construct a node represents."""

    RETURN_CALL = "return_call"
    EXPECT_CALL = "expect_call"
    STUB_CALL = "stub_call"
    THROW_CALL = "throw_call"
    IGNORE_ARGS_CALL = "ignore_args_call"
    REPEAT_OPTION_CALL = "repeat_option_call"
    OUT_REF_MARKER = "out_ref_marker"
    VERIFY_ALL_CALL = "verify_all_call"
    ASSERT_CALLED_CALL = "assert_called_call"
    ASSERT_NOT_CALLED_CALL = "assert_not_called_call"
    PROPERTY_BEHAVIOR_CALL = "property_behavior_call"
    # Argument-position markers
    ANY_ARG_MARKER = "any_arg_marker"
    OUT_ARG_MARKER = "out_arg_marker"
    NULL_ARG_MARKER = "null_arg_marker"
    NOT_NULL_ARG_MARKER = "not_null_arg_marker"
    EQUAL_ARG_MARKER = "equal_arg_marker"
    SAME_ARG_MARKER = "same_arg_marker"
    MATCHES_ARG_MARKER = "matches_arg_marker"


ARGUMENT_TAGS = frozenset(
    {
        PatternTag.ANY_ARG_MARKER,
        PatternTag.OUT_ARG_MARKER,
        PatternTag.NULL_ARG_MARKER,
        PatternTag.NOT_NULL_ARG_MARKER,
        PatternTag.EQUAL_ARG_MARKER,
        PatternTag.SAME_ARG_MARKER,
        PatternTag.MATCHES_ARG_MARKER,
    }
)

_EXACT_RULES: dict[tuple[str, str], PatternTag] = {
    ("Return", METHOD_OPTIONS): PatternTag.RETURN_CALL,
    ("Throw", METHOD_OPTIONS): PatternTag.THROW_CALL,
    ("IgnoreArguments", METHOD_OPTIONS): PatternTag.IGNORE_ARGS_CALL,
    ("OutRef", METHOD_OPTIONS): PatternTag.OUT_REF_MARKER,
    ("PropertyBehavior", METHOD_OPTIONS): PatternTag.PROPERTY_BEHAVIOR_CALL,
    ("Expect", EXTENSIONS): PatternTag.EXPECT_CALL,
    ("Stub", EXTENSIONS): PatternTag.STUB_CALL,
    ("GenerateMock", MOCK_REPOSITORY): PatternTag.STUB_CALL,
    ("GenerateStub", MOCK_REPOSITORY): PatternTag.STUB_CALL,
    ("VerifyAllExpectations", EXTENSIONS): PatternTag.VERIFY_ALL_CALL,
    ("AssertWasCalled", EXTENSIONS): PatternTag.ASSERT_CALLED_CALL,
    ("AssertWasNotCalled", EXTENSIONS): PatternTag.ASSERT_NOT_CALLED_CALL,
    ("Anything", IS_ARG): PatternTag.ANY_ARG_MARKER,
    ("Dummy", OUT_REF_DUMMY): PatternTag.OUT_ARG_MARKER,
    ("Null", IS_ARG): PatternTag.NULL_ARG_MARKER,
    ("NotNull", IS_ARG): PatternTag.NOT_NULL_ARG_MARKER,
    ("Equal", IS_ARG): PatternTag.EQUAL_ARG_MARKER,
    ("Same", IS_ARG): PatternTag.SAME_ARG_MARKER,
    ("Matches", ARG): PatternTag.MATCHES_ARG_MARKER,
}

_FAMILY_RULES: dict[str, PatternTag] = {
    REPEAT: PatternTag.REPEAT_OPTION_CALL,
}


class PatternCatalogue:
    """Classify resolved identities into pattern tags.

    Classification first tries an exact match on member name, declaring
    type and declaring module. Failing that, any member of a type listed
    in the family rules (the repeat configuration) maps to that family's
    tag. Identities declared outside the configured source module never
    classify.

    Args:
        source_module: Dotted name of the module providing the source API.
    """

    def __init__(self, source_module: str = DEFAULT_SOURCE_MODULE) -> None:
        self.source_module = source_module

    def classify(self, identity: SymbolIdentity | None) -> PatternTag | None:
        if identity is None or identity.declaring_module != self.source_module:
            return None
        tag = _EXACT_RULES.get((identity.member_name, identity.declaring_type))
        if tag is not None:
            return tag
        return _FAMILY_RULES.get(identity.declaring_type)

    __call__ = classify


def member_identity(type_name: str, member_name: str, module: str) -> SymbolIdentity | None:
    """Look ``member_name`` up on ``type_name`` in the source API table."""
    member = SOURCE_API.get(type_name, {}).get(member_name)
    if member is None:
        return None
    return SymbolIdentity(member_name, type_name, module, member.kind)


def result_type_of(identity: SymbolIdentity) -> str | None:
    member = SOURCE_API.get(identity.declaring_type, {}).get(identity.member_name)
    return member.result_type if member else None
