"""Helpers for the expectation lambdas of the source API.

``mock.Expect(lambda x: x.Load(1))`` binds the lambda parameter to the
mock. Rewriting the expectation means substituting the mock expression
for that parameter and, for verification calls, inserting
``Received()``/``DidNotReceive()`` at the first place the mock is used.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from dataclasses import dataclass

import libcst as cst


def receiver_key(node: cst.BaseExpression) -> str | None:
    """Return the dotted text of a ``Name`` or ``a.b.c`` chain, else None."""
    if isinstance(node, cst.Name):
        return node.value
    if isinstance(node, cst.Attribute):
        base = receiver_key(node.value)
        return f"{base}.{node.attr.value}" if base is not None else None
    return None


class _ParameterRenamer(cst.CSTTransformer):
    """Replace loads of a lambda parameter with another expression."""

    def __init__(self, parameter: str, replacement: cst.BaseExpression) -> None:
        super().__init__()
        self._parameter = parameter
        self._replacement = replacement
        self._protected: set[cst.Name] = set()

    def visit_Attribute(self, node: cst.Attribute) -> bool:
        self._protected.add(node.attr)
        return True

    def visit_Arg(self, node: cst.Arg) -> bool:
        if node.keyword is not None:
            self._protected.add(node.keyword)
        return True

    def visit_Lambda(self, node: cst.Lambda) -> bool:
        # A nested lambda that rebinds the name shadows it.
        params = node.params
        names = [p.name.value for p in (*params.posonly_params, *params.params, *params.kwonly_params)]
        if isinstance(params.star_arg, cst.Param):
            names.append(params.star_arg.name.value)
        if params.star_kwarg is not None:
            names.append(params.star_kwarg.name.value)
        return self._parameter not in names

    def leave_Name(self, original_node: cst.Name, updated_node: cst.Name) -> cst.BaseExpression:
        if original_node in self._protected or original_node.value != self._parameter:
            return updated_node
        return self._replacement


class _FirstUseReplacer(cst.CSTTransformer):
    """Replace the first use (document order) of a dotted name."""

    def __init__(self, key: str, replacement: cst.BaseExpression) -> None:
        super().__init__()
        self._key = key
        self._replacement = replacement
        self._target: cst.CSTNode | None = None
        self._done = False
        self._protected: set[cst.Name] = set()

    @property
    def replaced(self) -> bool:
        return self._done

    def visit_Attribute(self, node: cst.Attribute) -> bool:
        if self._target is not None:
            return False
        if receiver_key(node) == self._key:
            self._target = node
            return False
        self._protected.add(node.attr)
        return True

    def visit_Name(self, node: cst.Name) -> bool:
        if self._target is None and node not in self._protected and node.value == self._key:
            self._target = node
        return False

    def _swap(self, original_node: cst.CSTNode, updated_node: cst.BaseExpression) -> cst.BaseExpression:
        # The renamed body may reuse one receiver node in several places.
        if self._done or original_node is not self._target:
            return updated_node
        self._done = True
        return self._replacement

    def leave_Attribute(self, original_node: cst.Attribute, updated_node: cst.Attribute) -> cst.BaseExpression:
        return self._swap(original_node, updated_node)

    def leave_Name(self, original_node: cst.Name, updated_node: cst.Name) -> cst.BaseExpression:
        return self._swap(original_node, updated_node)


@dataclass(frozen=True)
class LambdaParts:
    """Pieces of ``receiver.Method(lambda p: body)`` after renaming.

    Attributes:
        receiver: The mock expression the call is rooted at.
        key: Dotted text of ``receiver``; the deferred-call queue key.
        body: Lambda body with the parameter replaced by ``receiver``.
        arguments: Arguments of the mocked invocation when the body is a
            method call, else an empty tuple.
    """

    receiver: cst.BaseExpression
    key: str
    body: cst.BaseExpression
    arguments: tuple[cst.Arg, ...]


def extract_lambda_parts(call: cst.Call) -> LambdaParts | None:
    """Split an expectation call into receiver, renamed body and arguments.

    Returns None unless ``call`` is ``<name chain>.Member(lambda p: ...)``
    with exactly one plain positional lambda parameter.
    """
    func = call.func
    if not isinstance(func, cst.Attribute) or not call.args:
        return None
    key = receiver_key(func.value)
    if key is None:
        return None
    lam = call.args[0].value
    if not isinstance(lam, cst.Lambda):
        return None
    params = lam.params
    if (
        len(params.params) != 1
        or params.posonly_params
        or params.kwonly_params
        or isinstance(params.star_arg, cst.Param)
        or params.star_kwarg is not None
        or params.params[0].default is not None
    ):
        return None

    receiver = func.value
    body = lam.body.visit(_ParameterRenamer(params.params[0].name.value, receiver))
    arguments: tuple[cst.Arg, ...] = ()
    if isinstance(body, cst.Call) and isinstance(body.func, cst.Attribute):
        arguments = tuple(body.args)
    return LambdaParts(receiver=receiver, key=key, body=body, arguments=arguments)


def prepend_call(parts: LambdaParts, method: str) -> cst.BaseExpression | None:
    """Insert ``receiver.<method>()`` at the first use of the receiver in the body.

    ``mock.Save(1)`` becomes ``mock.Received().Save(1)``. Returns None when
    the body never refers to the receiver.
    """
    prefixed = cst.Call(func=cst.Attribute(value=parts.receiver, attr=cst.Name(method)))
    replacer = _FirstUseReplacer(parts.key, prefixed)
    result = parts.body.visit(replacer)
    return result if replacer.replaced else None
