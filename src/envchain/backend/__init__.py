"""Pluggable secret storage.

Backends are registered in the ``envchain.backends`` entry point group and
selected by name at startup. Third-party packages can add backends for OS
keyrings or credential managers by implementing :class:`Backend`.

"""

import importlib
from typing import TYPE_CHECKING, Dict, List

from importlib_metadata import entry_points

from envchain import UnknownBackend
from envchain._output import output

if TYPE_CHECKING:
    from envchain.config import Settings

ENTRY_POINT_GROUP = "envchain.backends"

ALIASES = {
    "file": "age",
}

BUILTIN = {
    "age": "envchain.backend.age:AgeBackend",
}


class Backend:
    """The contract every secret storage implements."""

    name: str

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Backend":
        raise NotImplementedError("from_settings() not implemented.")

    def get_namespace(self, namespace: str) -> Dict[str, str]:
        """Return all entries of `namespace` or raise NamespaceNotFound."""
        raise NotImplementedError("get_namespace() not implemented.")

    def set_entries(self, namespace: str, entries: Dict[str, str]):
        raise NotImplementedError("set_entries() not implemented.")

    def unset_entries(self, namespace: str, names: List[str]):
        """Remove `names`. Raises NamespaceNotFound for unknown namespaces."""
        raise NotImplementedError("unset_entries() not implemented.")

    def list_namespaces(self) -> List[str]:
        raise NotImplementedError("list_namespaces() not implemented.")

    def list_entries(self, namespace: str) -> List[str]:
        raise NotImplementedError("list_entries() not implemented.")


def available_backends() -> List[str]:
    names = set(BUILTIN)
    names.update(entry_points(group=ENTRY_POINT_GROUP).names)
    return sorted(names)


def _load_factory(name):
    registered = entry_points(group=ENTRY_POINT_GROUP)
    if name in registered.names:
        return registered[name].load()
    module_name, _, attr = BUILTIN[name].partition(":")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def get_backend(settings: "Settings") -> Backend:
    """Instantiate the backend selected in `settings`."""
    name = settings.backend.strip().lower()
    name = ALIASES.get(name, name)
    if name not in available_backends():
        raise UnknownBackend.from_context(
            settings.backend, available_backends()
        )
    output.annotate(f"Selected backend {name}", debug=True)
    factory = _load_factory(name)
    return factory.from_settings(settings)
