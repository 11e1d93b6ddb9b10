"""Property-based tests for the call-chain rewrite.

These tests verify that modules without Rhino Mocks are left alone,
that every expectation is turned into exactly one received check and
that the traversal stacks always end balanced.
"""

import libcst as cst
from hypothesis import given

from splurge_rhino_to_nsubstitute.transformers import RhinoToNSubstituteTransformer
from tests.hypothesis_config import REWRITE_SETTINGS
from tests.property.strategies import expectation_modules, python_source_code


class TestRewriteProperties:
    """Property-based tests for RhinoToNSubstituteTransformer."""

    @REWRITE_SETTINGS
    @given(source_code=python_source_code())
    def test_code_without_rhino_import_is_unchanged(self, source_code: str) -> None:
        transformer = RhinoToNSubstituteTransformer()
        assert transformer.transform_code(source_code) == source_code
        assert transformer.last_outcome is not None
        assert not transformer.last_outcome.statistics

    @REWRITE_SETTINGS
    @given(case=expectation_modules())
    def test_each_expectation_becomes_one_received_check(self, case: dict) -> None:
        transformer = RhinoToNSubstituteTransformer()
        result = transformer.transform_code(case["code"])

        cst.parse_module(result)
        transformer.call_chain_stack.ensure_balanced()
        transformer.block_stack.ensure_balanced()
        assert result.count(f"{case['mock']}.Received().") == len(case["members"])
        for index, member in enumerate(case["members"]):
            assert f"{case['mock']}.{member}({index}).Returns({index})" in result
        assert "Expect(" not in result
        assert "VerifyAllExpectations" not in result
        assert "rhino_mocks" not in result

    @REWRITE_SETTINGS
    @given(case=expectation_modules())
    def test_rewrite_is_stable_on_its_own_output(self, case: dict) -> None:
        once = RhinoToNSubstituteTransformer().transform_code(case["code"])
        assert RhinoToNSubstituteTransformer().transform_code(once) == once
