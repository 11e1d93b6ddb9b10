"""Scenario tests for the Rhino Mocks to NSubstitute rewrite."""

import logging
import textwrap

import libcst as cst
import pytest

from splurge_rhino_to_nsubstitute.exceptions import ParseError
from splurge_rhino_to_nsubstitute.transformers import RhinoToNSubstituteTransformer


def _src(code: str) -> str:
    return textwrap.dedent(code).lstrip("\n")


def transform(code: str, **kwargs) -> str:
    return RhinoToNSubstituteTransformer(**kwargs).transform_code(_src(code))


class TestExpectations:
    def test_expect_return_and_verify(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_save():
                repo = MockRepository.GenerateMock[IRepo]()
                repo.Expect(lambda r: r.Save(1)).Return(True)
                repo.VerifyAllExpectations()
            """
        )
        assert result == _src(
            """
            from nsubstitute import Substitute
            import nsubstitute.received_extensions


            def test_save():
                repo = Substitute.For[IRepo]()
                repo.Save(1).Returns(True)
                repo.Received().Save(1)
            """
        )

    def test_unverified_expectation_is_checked_at_end_of_block(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_flush():
                repo = MockRepository.GenerateMock[IRepo]()
                repo.Expect(lambda r: r.Flush())
                run(repo)
            """
        )
        assert result.endswith("    repo = Substitute.For[IRepo]()\n    run(repo)\n    repo.Received().Flush()\n")
        assert "Expect" not in result

    def test_each_verify_consumes_one_expectation_per_mock(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_two_mocks():
                a = MockRepository.GenerateMock[IA]()
                b = MockRepository.GenerateMock[IB]()
                a.Expect(lambda x: x.One()).Return(1)
                b.Expect(lambda x: x.Two()).Return(2)
                a.Expect(lambda x: x.Three()).Return(3)
                run(a, b)
                a.VerifyAllExpectations()
            """
        )
        body = result.split("run(a, b)\n", 1)[1]
        assert body == "    a.Received().One()\n    b.Received().Two()\n    a.Received().Three()\n"

    def test_ignore_arguments_and_repeat_are_spliced_out(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_chain():
                a = MockRepository.GenerateMock[IFoo]()
                a.Expect(lambda x: x.M(1)).IgnoreArguments().Repeat.Twice().Return(v)
            """
        )
        assert "    a.M(1).ReturnsForAnyArgs(v)\n" in result
        assert result.endswith("    a.Received().M(1)\n")
        assert "IgnoreArguments" not in result
        assert "Repeat" not in result

    def test_expectation_inside_if_is_removed_and_checked_at_function_end(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_cond():
                repo = MockRepository.GenerateMock[IRepo]()
                if enabled:
                    repo.Expect(lambda r: r.Flush())
                run(repo)
            """
        )
        assert "    if enabled:\n        pass\n    run(repo)\n    repo.Received().Flush()\n" in result

    def test_one_line_function_body_becomes_a_block(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_short(repo): repo.Expect(lambda r: r.Flush())
            """
        )
        assert "def test_short(repo):\n    repo.Received().Flush()\n" in result

    def test_method_on_self_attribute(self):
        result = transform(
            """
            import rhino_mocks


            class TestService:
                def test_it(self):
                    self.repo.Expect(lambda r: r.Load(2)).Return(None)
                    self.service.run()
                    self.repo.VerifyAllExpectations()
            """
        )
        assert "        self.repo.Load(2).Returns(None)\n" in result
        assert "        self.service.run()\n        self.repo.Received().Load(2)\n" in result
        assert "import rhino_mocks" not in result

    def test_module_level_statements(self):
        result = transform(
            """
            from rhino_mocks import MockRepository
            repo = MockRepository.GenerateMock[IRepo]()
            repo.Expect(lambda r: r.Flush())
            repo.VerifyAllExpectations()
            """
        )
        assert result == (
            "from nsubstitute import Substitute\n"
            "import nsubstitute.received_extensions\n"
            "repo = Substitute.For[IRepo]()\n"
            "repo.Received().Flush()\n"
        )

    def test_nested_function_keeps_its_own_obligations(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_outer():
                repo = MockRepository.GenerateMock[IRepo]()

                def arrange():
                    repo.Expect(lambda r: r.Flush())

                arrange()
                repo.VerifyAllExpectations()
            """
        )
        # the outer block has nothing queued, so the verify call stays
        assert "        repo.Received().Flush()\n" in result
        assert "    repo.VerifyAllExpectations()\n" in result

    def test_class_body_keeps_its_own_obligations(self):
        result = transform(
            """
            import rhino_mocks


            class TestSetup:
                repo.Expect(lambda r: r.Flush())

                def test_it(self):
                    pass
            """
        )
        assert "Expect" not in result
        assert "        pass\n    repo.Received().Flush()\n" in result
        assert "\nrepo.Received()" not in result


class TestStubs:
    def test_stub_throw(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_load_fails():
                repo = MockRepository.GenerateStub[IRepo]()
                repo.Stub(lambda r: r.Load(7)).Throw(KeyError("missing"))
            """
        )
        assert result == _src(
            """
            from nsubstitute import Substitute
            import nsubstitute.exception_extensions


            def test_load_fails():
                repo = Substitute.For[IRepo]()
                repo.Load(7).Throws(KeyError("missing"))
            """
        )

    def test_ignore_arguments_with_throw(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_any():
                repo = MockRepository.GenerateStub[IRepo]()
                repo.Stub(lambda r: r.Load(7)).IgnoreArguments().Throw(KeyError())
            """
        )
        assert "    repo.Load(7).ThrowsForAnyArgs(KeyError())\n" in result

    def test_bare_stubs_are_deleted_independently(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_bare():
                repo = MockRepository.GenerateStub[IRepo]()
                repo.Stub(lambda r: r.Load(1))
                repo.Stub(lambda r: r.Load(2))
                keep_me()
            """
        )
        assert result.endswith("    repo = Substitute.For[IRepo]()\n    keep_me()\n")
        assert "received_extensions" not in result

    def test_property_behavior_is_removed(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_view():
                view = MockRepository.GenerateStub[IView]()
                view.Stub(lambda v: v.Title).PropertyBehavior()
                view.Title = "x"
            """
        )
        assert "PropertyBehavior" not in result
        assert result.endswith("    view = Substitute.For[IView]()\n    view.Title = \"x\"\n")

    def test_generate_mock_keeps_constructor_arguments(self):
        result = transform(
            """
            from rhino_mocks import MockRepository
            clock = MockRepository.GenerateStub[Clock](2024, tz="UTC")
            """
        )
        assert "clock = Substitute.For[Clock](2024, tz=\"UTC\")\n" in result

    def test_chains_in_sibling_arguments_keep_separate_state(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_configure():
                a = MockRepository.GenerateStub[IA]()
                b = MockRepository.GenerateStub[IB]()
                configure(a.Stub(lambda x: x.M(1)).IgnoreArguments().Return(1), b.Stub(lambda x: x.N(2)).Return(2))
            """
        )
        assert "    configure(a.M(1).ReturnsForAnyArgs(1), b.N(2).Returns(2))\n" in result


class TestAssertions:
    def test_assert_was_called_and_not_called(self):
        result = transform(
            """
            from rhino_mocks import Arg, MockRepository


            def test_notify():
                sender = MockRepository.GenerateMock[ISender]()
                Service(sender).Run()
                sender.AssertWasCalled(lambda s: s.Send(Arg[str].Is.Anything))
                sender.AssertWasNotCalled(lambda s: s.Cancel())
            """
        )
        assert result == _src(
            """
            import nsubstitute
            from nsubstitute import Substitute
            import nsubstitute.received_extensions


            def test_notify():
                sender = Substitute.For[ISender]()
                Service(sender).Run()
                sender.Received().Send(nsubstitute.Arg.Any[str]())
                sender.DidNotReceive().Cancel()
            """
        )


class TestArgumentMarkers:
    CODE = """
        from rhino_mocks import Arg, MockRepository


        def test_markers():
            svc = MockRepository.GenerateStub[IService]()
            svc.Stub(lambda s: s.Handle({marker})).Return(1)
        """

    @pytest.mark.parametrize(
        "marker,expected",
        [
            ("Arg[int].Is.Anything", "nsubstitute.Arg.Any[int]()"),
            ("Arg[str].Is.Null", "nsubstitute.Arg.Is[str](lambda arg: arg is None)"),
            ("Arg[str].Is.NotNull", "nsubstitute.Arg.Is[str](lambda arg: arg is not None)"),
            ("Arg[int].Is.Equal(5)", "nsubstitute.Arg.Is[int](5)"),
            ("Arg[Node].Is.Same(root)", "nsubstitute.Arg.Is[Node](lambda arg: arg is root)"),
            ("Arg[Node].Is.Same(a or b)", "nsubstitute.Arg.Is[Node](lambda arg: arg is (a or b))"),
            ("Arg[int].Matches(lambda v: v > 3)", "nsubstitute.Arg.Is[int](lambda v: v > 3)"),
            ("Arg[Dict[str, int]].Is.Anything", "nsubstitute.Arg.Any[Dict[str, int]]()"),
        ],
    )
    def test_marker_rewrites(self, marker, expected):
        result = transform(self.CODE.format(marker=marker))
        assert f"    svc.Handle({expected}).Returns(1)\n" in result
        assert result.startswith("import nsubstitute\n")

    def test_unimported_arg_is_left_alone(self):
        code = _src(
            """
            from rhino_mocks import MockRepository


            def test_markers():
                svc.Stub(lambda s: s.Handle(Arg[int].Is.Anything)).Return(1)
            """
        )
        result = RhinoToNSubstituteTransformer().transform_code(code)
        assert "svc.Handle(Arg[int].Is.Anything).Returns(1)" in result


class TestOutputArguments:
    def test_out_marker_value_becomes_callback(self):
        result = transform(
            """
            from rhino_mocks import Arg, MockRepository


            def test_try_get():
                cache = MockRepository.GenerateStub[ICache]()
                cache.Stub(lambda c: c.TryGet("k", Arg[int].Out(42).Dummy, Arg[str].Out().Dummy)).Return(True)
            """
        )
        assert (
            "    def _returns_callback(call_info):\n"
            "        call_info[1] = 42\n"
            "        return True\n"
            '    cache.TryGet("k", nsubstitute.Arg.Any[int](out=True), nsubstitute.Arg.Any[str](out=True))'
            ".Returns(_returns_callback)\n"
        ) in result
        assert "call_info[2]" not in result

    def test_out_ref_values_fill_positions_in_order(self):
        result = transform(
            """
            from rhino_mocks import Arg, MockRepository


            def test_parse():
                parser = MockRepository.GenerateStub[IParser]()
                parser.Stub(lambda p: p.Parse(Arg[int].Out().Dummy, "text", Arg[str].Out().Dummy)).OutRef(7, "rest").Return(True)
            """
        )
        assert "        call_info[0] = 7\n        call_info[2] = \"rest\"\n        return True\n" in result
        assert "OutRef" not in result

    def test_callbacks_in_one_block_get_distinct_names(self):
        result = transform(
            """
            from rhino_mocks import Arg, MockRepository


            def test_two():
                cache = MockRepository.GenerateStub[ICache]()
                cache.Stub(lambda c: c.TryGet("a", Arg[int].Out(1).Dummy)).Return(True)
                cache.Stub(lambda c: c.TryGet("b", Arg[int].Out(2).Dummy)).Return(False)
            """
        )
        assert "def _returns_callback(call_info):" in result
        assert "def _returns_callback_1(call_info):" in result
        assert ".Returns(_returns_callback_1)\n" in result

    def test_out_ref_values_that_do_not_fit_are_left_in_place(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = transform(
                """
                from rhino_mocks import Arg, MockRepository


                def test_mismatch():
                    cache = MockRepository.GenerateStub[ICache]()
                    cache.Stub(lambda c: c.TryGet("k", Arg[int].Out().Dummy)).OutRef(1, 2).Return(True)
                """
            )
        assert '    cache.TryGet("k", nsubstitute.Arg.Any[int](out=True)).OutRef(1, 2).Returns(True)\n' in result
        assert "_returns_callback" not in result
        assert "OutRef left unchanged" in caplog.text

    def test_out_ref_after_return_is_left_in_place(self):
        result = transform(
            """
            from rhino_mocks import Arg, MockRepository


            def test_late():
                cache = MockRepository.GenerateStub[ICache]()
                cache.Stub(lambda c: c.TryGet("k", Arg[int].Out().Dummy)).Return(True).OutRef(7)
            """
        )
        assert ".Returns(True).OutRef(7)\n" in result

    def test_one_line_suite_receives_the_callback(self):
        result = transform(
            """
            from rhino_mocks import Arg, MockRepository


            def test_ready(ready):
                cache = MockRepository.GenerateStub[ICache]()
                if ready: cache.Stub(lambda c: c.TryGet("k", Arg[int].Out(42).Dummy)).Return(True)
            """
        )
        assert "    if ready:\n        def _returns_callback(call_info):\n" in result
        assert "call_info[1] = 42" in result
        assert '        cache.TryGet("k", nsubstitute.Arg.Any[int](out=True)).Returns(_returns_callback)\n' in result

    def test_dropped_output_values_are_reported(self, caplog):
        with caplog.at_level(logging.WARNING):
            transform(
                """
                from rhino_mocks import Arg, MockRepository


                def test_no_return():
                    cache = MockRepository.GenerateStub[ICache]()
                    cache.Stub(lambda c: c.TryGet("k", Arg[int].Out(42).Dummy)).Repeat.Any()
                """
            )
        assert "could not be carried into Returns" in caplog.text


class TestFallbackAndOptions:
    def test_code_without_source_import_is_unchanged(self):
        code = _src(
            """
            def test_plain(mock):
                mock.Expect(lambda m: m.Get()).Return(1)
                mock.VerifyAllExpectations()
            """
        )
        assert RhinoToNSubstituteTransformer().transform_code(code) == code

    def test_verify_without_expectation_is_left_alone(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_verify(repo):
                repo.VerifyAllExpectations()
            """
        )
        assert "    repo.VerifyAllExpectations()\n" in result

    def test_custom_modules(self):
        result = transform(
            """
            from legacy.mocks import Arg, MockRepository


            def test_custom():
                svc = MockRepository.GenerateStub[IService]()
                svc.Stub(lambda s: s.Get(Arg[int].Is.Anything)).Return(1)
            """,
            source_module="legacy.mocks",
            target_module="nsub",
        )
        assert result.startswith("import nsub\nfrom nsub import Substitute\n")
        assert "svc.Get(nsub.Arg.Any[int]()).Returns(1)" in result
        assert "legacy.mocks" not in result

    def test_import_handling_can_be_disabled(self):
        result = transform(
            """
            from rhino_mocks import MockRepository
            repo = MockRepository.GenerateMock[IRepo]()
            """,
            add_imports=False,
            remove_unused_imports=False,
        )
        assert result == "from rhino_mocks import MockRepository\nrepo = Substitute.For[IRepo]()\n"

    def test_custom_classifier_can_disable_rewrites(self):
        code = _src(
            """
            from rhino_mocks import MockRepository
            repo = MockRepository.GenerateMock[IRepo]()
            """
        )
        transformer = RhinoToNSubstituteTransformer(classify=lambda identity: None, remove_unused_imports=False)
        assert transformer.transform_code(code) == code

    def test_invalid_source_raises_parse_error(self):
        with pytest.raises(ParseError) as exc_info:
            RhinoToNSubstituteTransformer().transform_code("def broken(:\n", "test_broken.py")
        assert exc_info.value.details["source_file"] == "test_broken.py"

    def test_same_named_members_on_other_objects_are_left_alone(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_library(self):
                repo = MockRepository.GenerateMock[IRepo]()
                library.Return(book)
                assert self.items.Any()
                order.Times(3)
            """
        )
        assert "    library.Return(book)\n    assert self.items.Any()\n    order.Times(3)\n" in result
        assert "Returns" not in result

    def test_stored_options_are_rewritten(self):
        result = transform(
            """
            from rhino_mocks import MockRepository


            def test_stored():
                repo = MockRepository.GenerateStub[IRepo]()
                options = repo.Stub(lambda r: r.Load(1))
                options.Return(5)
            """
        )
        assert "    options = repo.Load(1)\n    options.Returns(5)\n" in result


class TestRewriteOutcome:
    CODE = _src(
        """
        from rhino_mocks import Arg, MockRepository


        def test_stats():
            repo = MockRepository.GenerateMock[IRepo]()
            repo.Expect(lambda r: r.Save(Arg[int].Is.Anything)).Throw(IOError())
            repo.VerifyAllExpectations()
        """
    )

    def test_outcome_flags_and_statistics(self):
        outcome = RhinoToNSubstituteTransformer().rewrite_module(cst.parse_module(self.CODE))

        assert outcome.uses_exception_extensions
        assert outcome.uses_received_extensions
        assert outcome.required_imports == {"module", "Substitute"}
        assert outcome.statistics == {
            "stub_call": 1,
            "expect_call": 1,
            "throw_call": 1,
            "verify_all_call": 1,
            "any_arg_marker": 1,
        }
        # imports are adjusted later
        assert outcome.code.startswith("from rhino_mocks import Arg, MockRepository\n")

    def test_outcome_counts_block_edits(self):
        code = _src(
            """
            from rhino_mocks import MockRepository


            def test_flush():
                repo = MockRepository.GenerateMock[IRepo]()
                repo.Expect(lambda r: r.Flush())
                repo.Expect(lambda r: r.Close())
                repo.VerifyAllExpectations()
            """
        )
        outcome = RhinoToNSubstituteTransformer().rewrite_module(cst.parse_module(code))

        assert outcome.deleted_statements == 2
        assert outcome.appended_calls == 1

    def test_scope_stacks_are_balanced_after_rewrite(self):
        transformer = RhinoToNSubstituteTransformer()
        transformer.rewrite_module(cst.parse_module(self.CODE))

        assert transformer.call_chain_stack.is_empty
        assert transformer.call_chain_stack.enter_count == transformer.call_chain_stack.exit_count > 0
        assert transformer.block_stack.enter_count == transformer.block_stack.exit_count == 2
        assert transformer.last_outcome is not None

    def test_transformer_can_be_reused(self):
        transformer = RhinoToNSubstituteTransformer()
        first = transformer.transform_code(self.CODE)
        second = transformer.transform_code(self.CODE)
        assert first == second
