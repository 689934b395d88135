import os.path
from typing import List, Optional

from ._output import output

with open(os.path.dirname(__file__) + "/version.txt") as f:
    __version__ = f.read().strip()


class ReportingException(Exception):
    """Exceptions that support user-readable reporting."""

    def __str__(self):
        raise NotImplementedError()

    def report(self):
        output.error(str(self))


class NamespaceNotFound(ReportingException):
    """An operation referenced a namespace without any entries."""

    namespace: str

    @classmethod
    def from_context(cls, namespace):
        self = cls()
        self.namespace = namespace
        return self

    def __str__(self):
        return f"Namespace `{self.namespace}` not defined."


class EntryNotFound(ReportingException):
    """A namespace exists but does not contain the requested name."""

    namespace: str
    name: str

    @classmethod
    def from_context(cls, namespace, name):
        self = cls()
        self.namespace = namespace
        self.name = name
        return self

    def __str__(self):
        return f"Variable `{self.name}` not defined in `{self.namespace}`."


class IdentityLoadError(ReportingException):
    """The identity file is missing, malformed or cannot be unlocked."""

    path: str
    reason: str
    hint: Optional[str] = None

    @classmethod
    def from_context(cls, path, reason, hint=None):
        self = cls()
        self.path = str(path)
        self.reason = reason
        self.hint = hint
        return self

    def __str__(self):
        message = f"Could not load identity {self.path}: {self.reason}"
        if self.hint:
            message += f"\n{self.hint}"
        return message

    def report(self):
        output.error("Could not load identity")
        output.tabular("identity", self.path, red=True)
        output.tabular("message", self.reason)
        if self.hint:
            output.tabular("hint", self.hint)


class PassphraseUnavailable(ReportingException):
    """A passphrase is required but cannot be asked for."""

    path: str

    @classmethod
    def from_context(cls, path):
        self = cls()
        self.path = str(path)
        return self

    def __str__(self):
        return (
            f"Identity {self.path} is protected by a passphrase, but there "
            "is no terminal to ask for it. Set "
            "ENVCHAIN_AGE_IDENTITY_PASSPHRASE or run interactively."
        )


class DecryptionError(ReportingException):
    """The container could not be decrypted with the active identity."""

    path: str
    identity: str
    reason: str

    @classmethod
    def from_context(cls, path, identity, reason):
        self = cls()
        self.path = str(path)
        self.identity = str(identity)
        self.reason = reason
        return self

    def __str__(self):
        return (
            f"Could not decrypt {self.path} with identity {self.identity}: "
            f"{self.reason}. The file was probably encrypted for a "
            "different identity."
        )

    def report(self):
        output.error("Could not decrypt secrets (wrong identity?)")
        output.tabular("file", self.path, red=True)
        output.tabular("identity", self.identity)
        output.tabular("message", self.reason)


class CorruptContainer(ReportingException):
    """Decryption succeeded but the content is not a valid container."""

    path: str
    reason: str

    @classmethod
    def from_context(cls, path, reason):
        self = cls()
        self.path = str(path)
        self.reason = reason
        return self

    def __str__(self):
        return f"Secrets file {self.path} is corrupt: {self.reason}"

    def report(self):
        output.error("Secrets file is corrupt")
        output.tabular("file", self.path, red=True)
        output.tabular("message", self.reason)


class IOFailure(ReportingException):
    """Reading or writing a file failed."""

    path: str
    operation: str
    reason: str

    @classmethod
    def from_context(cls, path, operation, error):
        self = cls()
        self.path = str(path)
        self.operation = operation
        self.reason = getattr(error, "strerror", None) or str(error)
        return self

    def __str__(self):
        return f"Failed to {self.operation} {self.path}: {self.reason}"

    def report(self):
        output.error(f"Failed to {self.operation} file")
        output.tabular("file", self.path, red=True)
        output.tabular("message", self.reason)


class ConfigError(ReportingException):
    """The configuration file can not be parsed."""

    path: str
    reason: str

    @classmethod
    def from_context(cls, path, reason):
        self = cls()
        self.path = str(path)
        self.reason = reason
        return self

    def __str__(self):
        return f"Invalid configuration file {self.path}: {self.reason}"

    def report(self):
        output.error("Invalid configuration file")
        output.tabular("file", self.path, red=True)
        output.tabular("message", self.reason)


class UnknownBackend(ReportingException):
    """The requested backend is not available."""

    name: str
    available: List[str]

    @classmethod
    def from_context(cls, name, available):
        self = cls()
        self.name = name
        self.available = sorted(available)
        return self

    def __str__(self):
        return "Unknown backend `{}`. Available: {}".format(
            self.name, ", ".join(self.available)
        )
