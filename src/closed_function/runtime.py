"""
Closed Function Runtime

Process-wide cache of materialized bundles. Spliced shims import this module
lazily and call `materialize` on every invocation of a closed function.
"""

import base64
import builtins
import importlib.util
import threading
import types
import zlib
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from closed_function.domain.errors import InternalInvariantError
from closed_function.domain.services import ENTRY_NAME


BUNDLE_NAME = "__closed_bundle__"

# module name -> (is_package, source text)
ModuleSources = Mapping[str, Tuple[bool, str]]


def encode_bundle(text: str) -> str:
    """Compress and base64-encode bundle text for embedding in a shim."""
    return base64.b64encode(zlib.compress(text.encode("utf-8"), 9)).decode("ascii")


def decode_bundle(payload: str) -> str:
    """Inverse of `encode_bundle`."""
    return zlib.decompress(base64.b64decode(payload.encode("ascii"))).decode("utf-8")


def render_bundle(modules: ModuleSources, entry_text: str) -> str:
    """
    Compose bundle text from inlined module sources and the entry script.

    The text installs the modules into its own BundleModules before the
    entry script runs, so it only executes under `ArtifactCache`.
    """
    if not modules:
        return entry_text
    lines = [f"{BUNDLE_NAME}.install({{"]
    for name in sorted(modules):
        is_package, text = modules[name]
        lines.append(f"    {name!r}: ({bool(is_package)!r}, {text!r}),")
    lines.append("})")
    return "\n".join(lines) + "\n\n" + entry_text


class BundleModules:
    """
    Private module registry of one materialized bundle.

    Inlined modules run in fresh module objects held here and never enter
    `sys.modules`, so a bundle shares no module state with its host or with
    other bundles. The bundle and every module it runs see an `__import__`
    that serves the inlined modules and hands anything else to the regular
    import system. Imports executed at call time resolve the same way.
    """

    def __init__(self, label: str, optimize: int = -1):
        """
        Initialize the registry.

        Args:
            label: Name used in module filenames, usually the fingerprint
            optimize: `compile()` optimize level for inlined modules
        """
        self.label = label
        self.optimize = optimize
        self.sources: Dict[str, Tuple[bool, str]] = {}
        self.modules: Dict[str, types.ModuleType] = {}
        self.builtins: Dict[str, Any] = dict(builtins.__dict__)
        self.builtins["__import__"] = self.import_module
        self._fallback = builtins.__import__
        self._lock = threading.RLock()

    def install(self, sources: ModuleSources) -> None:
        """Register module sources; missing parent packages become empty packages."""
        for name, (is_package, text) in sources.items():
            self.sources[name] = (bool(is_package), text)
            parent = name.rpartition(".")[0]
            while parent and parent not in self.sources:
                self.sources[parent] = (True, "")
                parent = parent.rpartition(".")[0]

    def namespace(self, name: str) -> Dict[str, Any]:
        """Globals for the bundle's entry script."""
        return {"__name__": name, "__builtins__": self.builtins, BUNDLE_NAME: self}

    def owns(self, name: str) -> bool:
        return name.partition(".")[0] in self.sources

    def import_module(self, name, globals=None, locals=None, fromlist=(), level=0):
        if level:
            package = (globals or {}).get("__package__")
            if not package:
                return self._fallback(name, globals, locals, fromlist, level)
            absolute = importlib.util.resolve_name("." * level + name, package)
        else:
            absolute = name

        if not self.owns(absolute):
            return self._fallback(name, globals, locals, fromlist, level)

        with self._lock:
            module = self._load(absolute)
            if not fromlist:
                return self.modules[absolute.partition(".")[0]]

            names = list(fromlist)
            if "*" in names:
                names.remove("*")
                names.extend(getattr(module, "__all__", ()))
            for item in names:
                submodule = f"{absolute}.{item}"
                if submodule in self.sources and not hasattr(module, item):
                    self._load(submodule)
            return module

    def _load(self, name: str) -> types.ModuleType:
        module = self.modules.get(name)
        if module is not None:
            return module
        if name not in self.sources:
            raise ModuleNotFoundError(
                f"No module named {name!r} in closed bundle {self.label}",
                name=name,
            )

        parent_name, _, child = name.rpartition(".")
        parent = self._load(parent_name) if parent_name else None

        is_package, text = self.sources[name]
        relative = name.replace(".", "/") + ("/__init__.py" if is_package else ".py")
        filename = f"<closed bundle {self.label}>/{relative}"
        module = types.ModuleType(name)
        module.__file__ = filename
        module.__package__ = name if is_package else parent_name
        module.__builtins__ = self.builtins
        if is_package:
            module.__path__ = []

        # Registered before running so circular imports see the partial module
        self.modules[name] = module
        try:
            exec(compile(text, filename, "exec", optimize=self.optimize), module.__dict__)
        except BaseException:
            del self.modules[name]
            raise

        if parent is not None:
            setattr(parent, child, module)
        return module


class ArtifactCache:
    """
    Fingerprint-keyed registry of bundle entry points.

    Entries are added lazily on first use and never evicted. Each
    fingerprint is evaluated at most once per cache, even when several
    threads race on the first call.
    """

    def __init__(self):
        self._entries: Dict[str, Callable[..., Any]] = {}
        self._lock = threading.Lock()
        self.materializations = 0

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, fingerprint: str) -> Optional[Callable[..., Any]]:
        return self._entries.get(fingerprint)

    def materialize(self, fingerprint: str, payload: str, optimize: int = -1) -> Callable[..., Any]:
        """
        Return the entry point of a bundle, evaluating it on first use.

        Args:
            fingerprint: Build fingerprint of the host module
            payload: Bundle text as produced by `encode_bundle`
            optimize: `compile()` optimize level

        Returns:
            The bundle's `__closed_entry__`
        """
        entry = self._entries.get(fingerprint)
        if entry is not None:
            return entry

        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                entry = self._evaluate(fingerprint, decode_bundle(payload), optimize)
                self._entries[fingerprint] = entry
        return entry

    def _evaluate(self, fingerprint: str, text: str, optimize: int) -> Callable[..., Any]:
        code = compile(text, f"<closed bundle {fingerprint}>", "exec", optimize=optimize)
        bundle = BundleModules(fingerprint, optimize=optimize)
        namespace = bundle.namespace(f"__closed_bundle_{fingerprint}__")
        exec(code, namespace)
        self.materializations += 1

        entry = namespace.get(ENTRY_NAME)
        if not callable(entry):
            raise InternalInvariantError(
                "bundle does not export a callable entry",
                detail=fingerprint,
            )
        return entry

    def clear(self) -> None:
        """Drop every entry. Only meant for tests."""
        with self._lock:
            self._entries.clear()
            self.materializations = 0


_cache = ArtifactCache()


def get_artifact_cache() -> ArtifactCache:
    """Get the process-wide artifact cache."""
    return _cache


def materialize(fingerprint: str, payload: str, optimize: int = -1) -> Callable[..., Any]:
    """Materialize through the process-wide cache."""
    return _cache.materialize(fingerprint, payload, optimize=optimize)
