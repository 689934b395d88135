"""Secrets stored in an age encrypted file.

Every operation reads and decrypts the whole file. Mutations re-encrypt the
whole container and replace the file atomically. There is no locking: two
processes changing the store at the same time will both succeed, but the
container written last wins and the other change is lost.

"""

import os
import pathlib
import tempfile
from typing import TYPE_CHECKING, Dict, List, Optional

from envchain import IOFailure, NamespaceNotFound
from envchain._output import output
from envchain.backend import Backend
from envchain.codec import decode, encode
from envchain.container import Container
from envchain.identity import Identity, resolve

if TYPE_CHECKING:
    from envchain.config import Settings


class SecretsFile:
    """The on-disk ciphertext of a store."""

    def __init__(self, path: pathlib.Path):
        self.path = pathlib.Path(path)

    def read(self) -> bytes:
        """Return the ciphertext, or no bytes if the file does not exist."""
        try:
            with open(self.path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return b""
        except OSError as e:
            raise IOFailure.from_context(self.path, "read", e) from e

    def replace(self, data: bytes):
        """Atomically replace the file's content with `data`.

        Readers see either the old or the new content. If anything fails
        before the final rename, the old file is left untouched.

        """
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=self.path.parent,
                prefix="." + self.path.name + ".",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise IOFailure.from_context(self.path, "write", e) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass


class AgeBackend(Backend):
    """The portable backend: one age encrypted file holding all namespaces."""

    name = "age"

    def __init__(
        self,
        secrets_path: pathlib.Path,
        identity_path: Optional[pathlib.Path] = None,
        default_identity_path: Optional[pathlib.Path] = None,
    ):
        self.file = SecretsFile(secrets_path)
        self.identity_path = identity_path
        self.default_identity_path = default_identity_path
        self._identity: Optional[Identity] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "AgeBackend":
        try:
            settings.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure.from_context(
                settings.config_dir, "create", e
            ) from e
        return cls(
            settings.secrets_path,
            identity_path=settings.age_identity,
            default_identity_path=settings.default_identity_path,
        )

    @property
    def identity(self) -> Identity:
        if self._identity is None:
            self._identity = resolve(
                self.identity_path, self.default_identity_path
            )
        return self._identity

    def load(self) -> Container:
        data = self.file.read()
        if not data:
            output.annotate(
                f"No secrets stored in {self.file.path} yet.", debug=True
            )
            return Container()
        return decode(data, self.identity, str(self.file.path))

    def store(self, container: Container):
        self.file.replace(encode(container, self.identity))
        output.annotate(f"Wrote {self.file.path}", debug=True)

    def get_namespace(self, namespace: str) -> Dict[str, str]:
        return self.load().namespace(namespace)

    def set_entries(self, namespace: str, entries: Dict[str, str]):
        if not entries:
            return
        container = self.load()
        for name, value in entries.items():
            container.set(namespace, name, value)
        self.store(container)

    def unset_entries(self, namespace: str, names: List[str]):
        container = self.load()
        if namespace not in container:
            raise NamespaceNotFound.from_context(namespace)
        for name in names:
            container.unset(namespace, name)
        self.store(container)

    def list_namespaces(self) -> List[str]:
        return self.load().list_namespaces()

    def list_entries(self, namespace: str) -> List[str]:
        return self.load().list_entries(namespace)
