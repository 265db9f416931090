"""
Unit tests for the shim generator.

Tests argument forwarding and the statement generated per function kind.
"""

import ast

import pytest

from closed_function.domain.services import BlockExtractor
from closed_function.domain.value_objects import BuildMode
from closed_function.infrastructure.injection.code_wrapper import (
    forward_arguments,
    generate_python_shim,
)


def signature(header: str) -> ast.arguments:
    return ast.parse(f"{header}\n    pass\n").body[0].args


def isolated(source: str):
    return BlockExtractor().extract(source).function


class TestForwardArguments:
    """Tests for forward_arguments."""

    def test_every_parameter_kind(self):
        args = signature("def f(self, a, /, b, c=1, *rest, d, e=2, **extra):")
        assert forward_arguments(args) == "self, a, b, c, *rest, d=d, e=e, **extra"

    def test_no_parameters(self):
        assert forward_arguments(signature("def f():")) == ""

    def test_keyword_only_without_varargs(self):
        assert forward_arguments(signature("def f(a, *, key):")) == "a, key=key"


class TestGeneratePythonShim:
    """Tests for generate_python_shim."""

    def test_plain_function(self):
        function = isolated("def f(a, b):\n    with __closed__:\n        return a + b\n")

        shim = generate_python_shim(function, "abc123", "PAYLOAD", BuildMode.PRODUCTION)

        assert shim == (
            "return __import__('closed_function.runtime', fromlist=('materialize',))"
            ".materialize('abc123', 'PAYLOAD', optimize=1)(a, b)"
        )

    def test_coroutine_awaits(self):
        function = isolated("async def f(a):\n    with __closed__:\n        return a\n")

        shim = generate_python_shim(function, "fp", "P", BuildMode.DEVELOPMENT)

        assert shim.startswith("return await __import__(")
        assert "optimize=0" in shim
        compile(f"async def f(a):\n    {shim}\n", "host.py", "exec")

    def test_async_generator_re_yields(self):
        function = isolated(
            "async def f(n):\n    with __closed__:\n        for i in range(n):\n            yield i\n"
        )

        shim = generate_python_shim(function, "fp", "P", BuildMode.NONE)

        assert shim.startswith("async for __closed_item__ in ")
        assert shim.endswith(": yield __closed_item__")
        compile(f"async def f(n):\n    {shim}\n", "host.py", "exec")

    @pytest.mark.parametrize("mode", list(BuildMode))
    def test_shim_is_one_compilable_line(self, mode):
        function = isolated("def f(x, *a, k, **kw):\n    with __closed__:\n        return x\n")

        shim = generate_python_shim(function, "fp", "P", mode)

        assert "\n" not in shim
        assert f"optimize={mode.optimize_level}" in shim
        compile(f"def f(x, *a, k, **kw):\n    {shim}\n", "host.py", "exec")
