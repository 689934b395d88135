from typing import Dict, List

from envchain import EntryNotFound, NamespaceNotFound


class Container:
    """The decrypted content of a secrets store.

    Maps namespace names to mappings of variable names to values. A
    namespace only exists while it holds at least one entry.

    """

    def __init__(self):
        self._namespaces: Dict[str, Dict[str, str]] = {}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, str]]) -> "Container":
        self = cls()
        for namespace, entries in data.items():
            for name, value in entries.items():
                self.set(namespace, name, value)
        return self

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            namespace: dict(entries)
            for namespace, entries in self._namespaces.items()
        }

    def __eq__(self, other):
        if not isinstance(other, Container):
            return NotImplemented
        return self._namespaces == other._namespaces

    def __len__(self):
        return len(self._namespaces)

    def __contains__(self, namespace):
        return namespace in self._namespaces

    def __repr__(self):
        # Never show values.
        return "<Container namespaces={!r}>".format(self.list_namespaces())

    def get(self, namespace: str, name: str) -> str:
        entries = self._entries(namespace)
        try:
            return entries[name]
        except KeyError:
            raise EntryNotFound.from_context(namespace, name) from None

    def set(self, namespace: str, name: str, value: str):
        if not namespace:
            raise ValueError("Namespace must not be empty.")
        if not name:
            raise ValueError("Variable name must not be empty.")
        self._namespaces.setdefault(namespace, {})[name] = value

    def unset(self, namespace: str, name: str):
        entries = self._namespaces.get(namespace)
        if entries is None:
            return
        entries.pop(name, None)
        if not entries:
            del self._namespaces[namespace]

    def namespace(self, namespace: str) -> Dict[str, str]:
        return dict(self._entries(namespace))

    def list_namespaces(self) -> List[str]:
        return sorted(self._namespaces)

    def list_entries(self, namespace: str) -> List[str]:
        return sorted(self._entries(namespace))

    def _entries(self, namespace):
        try:
            return self._namespaces[namespace]
        except KeyError:
            raise NamespaceNotFound.from_context(namespace) from None
