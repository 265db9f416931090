"""
Integration tests with the real stickytape bundler and the CLI.
"""

import importlib
import os
import subprocess
import sys
from pathlib import Path

import pytest

from closed_function.domain.value_objects import BuildMode
from closed_function.infrastructure.bundler.stickytape_bundler import StickytapeBundler
from closed_function.infrastructure.checker.pyflakes_checker import PyflakesChecker
from closed_function.infrastructure.config.config import Settings, get_settings
from closed_function.interfaces.cli import main
from closed_function.interfaces.hooks import CompilationOptions
from closed_function.interfaces.plugin import ClosedFunctionPlugin
from closed_function.interfaces.source_tree import GRAPH_FILE, SourceTreeBuild


VALID_TREE = ("module_to_import", "module_with_closed", "entry_module")

SRC_DIR = Path(__file__).resolve().parents[2] / "src"

LAZY_TREE = {
    "lazyhelp.py": "def triple(x):\n    return x * 3\n",
    "lazyhost.py": (
        "def compute(x):\n"
        "    with __closed__:\n"
        "        import lazyhelp\n"
        "        return lazyhelp.triple(x)\n"
    ),
}

PACKAGE_TREE = {
    "shop/__init__.py": "",
    "shop/pricing.py": "RATE = 3\n\n\ndef scale(x):\n    return x * RATE\n",
    "shop/orders.py": (
        "from .pricing import scale\n"
        "\n"
        "\n"
        "def total(x):\n"
        "    with __closed__:\n"
        "        return scale(x)\n"
    ),
}


def write_tree(root: Path, files) -> Path:
    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


async def stickytape_build(root: Path, out: Path, work_dir: Path):
    plugin = ClosedFunctionPlugin(
        checker=PyflakesChecker(),
        bundler=StickytapeBundler(),
        settings=Settings(work_dir=str(work_dir)),
    )
    return await SourceTreeBuild(
        source_root=root,
        output_root=out,
        options=CompilationOptions(mode=BuildMode.DEVELOPMENT, python_paths=(str(root),)),
        plugins=[plugin],
    ).run()


def run_in_fresh_interpreter(out: Path, code: str) -> subprocess.CompletedProcess:
    env = dict(os.environ, PYTHONPATH=str(SRC_DIR))
    return subprocess.run(
        [sys.executable, "-c", code],
        cwd=out,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )


class TestStickytapeBuild:
    """Builds that inline the satellite's local imports."""

    @pytest.mark.asyncio
    async def test_bundle_inlines_local_modules(self, source_tree, tmp_path, isolated_imports):
        root = source_tree(*VALID_TREE)
        out = tmp_path / "out"
        work_dir = tmp_path / "work"
        settings = Settings(work_dir=str(work_dir), keep_intermediates=True)
        plugin = ClosedFunctionPlugin(
            checker=PyflakesChecker(),
            bundler=StickytapeBundler(),
            settings=settings,
        )

        report = await SourceTreeBuild(
            source_root=root,
            output_root=out,
            options=CompilationOptions(mode=BuildMode.DEVELOPMENT, python_paths=(str(root),)),
            plugins=[plugin],
        ).run()

        assert report.succeeded, report.errors
        bundles = list(work_dir.glob("ClosedFunctionPlugin-*/dist/bundle-*.py"))
        assert len(bundles) == 1
        bundle_text = bundles[0].read_text(encoding="utf-8")
        assert bundle_text.startswith("__closed_bundle__.install({\n    'module_to_import': (False, ")
        assert "__stickytape" not in bundle_text
        assert "__closed_entry__ = closed_function" in bundle_text

        isolated_imports(out)
        entry = importlib.import_module("entry_module")
        assert entry.MESSAGE == "YES"

    @pytest.mark.asyncio
    async def test_lazy_import_runs_without_the_source_helper(self, tmp_path):
        root = write_tree(tmp_path / "src", LAZY_TREE)
        out = tmp_path / "out"

        report = await stickytape_build(root, out, tmp_path / "work")

        assert report.succeeded, report.errors
        (out / "lazyhelp.py").unlink()
        result = run_in_fresh_interpreter(
            out,
            "import sys\n"
            "import lazyhost\n"
            "before = list(sys.path)\n"
            "print(lazyhost.compute(5), lazyhost.compute(7))\n"
            "print('lazyhelp' in sys.modules, sys.path == before)\n",
        )

        assert result.returncode == 0, result.stderr
        assert result.stdout.splitlines() == ["15 21", "False True"]

    @pytest.mark.asyncio
    async def test_package_with_relative_imports(self, tmp_path):
        root = write_tree(tmp_path / "src", PACKAGE_TREE)
        out = tmp_path / "out"

        report = await stickytape_build(root, out, tmp_path / "work")

        assert report.succeeded, report.errors
        result = run_in_fresh_interpreter(
            out,
            "import sys\n"
            "from shop.orders import total\n"
            "shared = sys.modules['shop.pricing']\n"
            "shared.RATE = 100\n"
            "print(total(2))\n",
        )

        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == "6"


class TestBuildCommand:
    """Tests for `closed-function build`."""

    @pytest.fixture(autouse=True)
    def cli_environment(self, monkeypatch, tmp_path):
        work_dir = tmp_path / "cli-work"
        work_dir.mkdir()
        monkeypatch.setenv("CLOSED_FUNCTION_WORK_DIR", str(work_dir))
        monkeypatch.setenv("CLOSED_FUNCTION_LOG_LEVEL", "WARNING")
        get_settings.cache_clear()
        yield work_dir
        get_settings.cache_clear()

    def test_build_succeeds(self, source_tree, tmp_path, cli_environment, capsys):
        root = source_tree(*VALID_TREE)
        out = tmp_path / "out"

        code = main(["build", str(root), "--out", str(out), "--mode", "production"])

        assert code == 0
        assert (out / GRAPH_FILE).exists()
        assert "__closed__" not in (out / "module_with_closed.py").read_text(encoding="utf-8")
        assert f"Built 3 modules into {out}" in capsys.readouterr().out
        assert list(cli_environment.iterdir()) == []

    def test_capture_violation_fails_the_build(self, source_tree, tmp_path, capsys):
        root = source_tree("module_to_import", "module_with_capture")

        code = main(["build", str(root), "--out", str(tmp_path / "out")])

        assert code == 1
        assert "undefined name 'OFFSET'" in capsys.readouterr().err

    def test_missing_source_directory(self, tmp_path, capsys):
        code = main(["build", str(tmp_path / "missing"), "--out", str(tmp_path / "out")])

        assert code == 2
        assert "Source directory not found" in capsys.readouterr().err

    def test_invalid_project_options(self, source_tree, tmp_path, capsys):
        root = source_tree("module_to_import")
        (root / "pyproject.toml").write_text(
            '[tool.closed-function]\nmode = "fast"\n', encoding="utf-8"
        )

        code = main(["build", str(root), "--out", str(tmp_path / "out")])

        assert code == 2
        assert "invalid closed-function options" in capsys.readouterr().err
