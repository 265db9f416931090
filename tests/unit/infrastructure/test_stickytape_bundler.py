"""
Unit tests for the stickytape bundler adapter.

stickytape itself is patched out; these tests cover how its output becomes
a self-contained bundle.
"""

import sys

import pytest

from closed_function.domain.value_objects import BundleOptions, BundleRequest
from closed_function.infrastructure.bundler import stickytape_bundler
from closed_function.infrastructure.bundler.stickytape_bundler import (
    StickytapeBundler,
    inlined_modules,
)
from closed_function.runtime import ArtifactCache, encode_bundle


STICKYTAPE_SCRIPT = (
    "#!/usr/bin/env python\n"
    "with __stickytape_temporary_dir() as __stickytape_working_dir:\n"
    "    def __stickytape_write_module(path, contents):\n"
    "        pass\n"
    "    __stickytape_write_module('lazyhelp.py', b'def triple(x):\\n    return x * 3\\n')\n"
    "    __stickytape_write_module('tools/__init__.py', b'')\n"
    "    __stickytape_write_module('tools/text.py', b'from . import __name__ as parent\\n')\n"
    "    print('entry script')\n"
)

ENTRY = (
    "def f(x):\n"
    "    import lazyhelp\n"
    "    return lazyhelp.triple(x)\n"
    "\n"
    "\n"
    "__closed_entry__ = f\n"
)


class TestInlinedModules:
    """Tests for inlined_modules."""

    def test_reads_module_writes(self):
        modules = inlined_modules(STICKYTAPE_SCRIPT)

        assert modules == {
            "lazyhelp": (False, "def triple(x):\n    return x * 3\n"),
            "tools": (True, ""),
            "tools.text": (False, "from . import __name__ as parent\n"),
        }

    def test_script_without_local_modules(self):
        assert inlined_modules("print('entry script')\n") == {}

    def test_non_literal_arguments(self):
        with pytest.raises(ValueError):
            inlined_modules("__stickytape_write_module(path, contents)\n")


class TestStickytapeBundler:
    """Tests for StickytapeBundler."""

    @pytest.fixture
    def request_for(self, tmp_path):
        entry = tmp_path / "emit" / "host.py"
        entry.parent.mkdir()
        entry.write_text(ENTRY, encoding="utf-8")
        return BundleRequest(
            entry_path=entry,
            output_path=tmp_path / "dist" / "bundle-fp.py",
            options=BundleOptions(python_paths=(str(tmp_path),)),
        )

    @pytest.mark.asyncio
    async def test_bundle_is_self_contained(self, monkeypatch, request_for):
        calls = []

        def script(path, add_python_paths=None):
            calls.append((path, add_python_paths))
            return STICKYTAPE_SCRIPT

        monkeypatch.setattr(stickytape_bundler.stickytape, "script", script)

        result = await StickytapeBundler().bundle(request_for)

        assert result.success
        assert calls == [(str(request_for.entry_path), [str(request_for.entry_path.parent.parent)])]
        text = request_for.output_path.read_text(encoding="utf-8")
        assert "__stickytape" not in text
        assert text.endswith(ENTRY)

        entry = ArtifactCache().materialize("fp", encode_bundle(text))
        assert entry(5) == 15
        assert "lazyhelp" not in sys.modules

    @pytest.mark.asyncio
    async def test_stickytape_error_is_reported(self, monkeypatch, request_for):
        def script(path, add_python_paths=None):
            raise OSError("cannot read module")

        monkeypatch.setattr(stickytape_bundler.stickytape, "script", script)

        result = await StickytapeBundler().bundle(request_for)

        assert not result.success
        assert result.diagnostics == ("OSError: cannot read module",)
        assert not request_for.output_path.exists()
