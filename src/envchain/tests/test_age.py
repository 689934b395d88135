import os
import stat
from unittest import mock

import pytest

from envchain import DecryptionError, IOFailure, NamespaceNotFound
from envchain.backend.age import AgeBackend, SecretsFile
from envchain.config import Settings

AWS = {
    "AWS_ACCESS_KEY_ID": "AKIA...",
    "AWS_SECRET_ACCESS_KEY": "s3cr3t",
}


@pytest.fixture
def secrets_path(tmp_path):
    return tmp_path / "store" / "secrets.age"


@pytest.fixture
def backend(secrets_path, identity_path, identity):
    return AgeBackend(secrets_path, identity_path=identity_path)


def test_age__set_entries__1(backend):
    """It returns exactly the entries that were set."""
    backend.set_entries("aws", AWS)
    assert backend.get_namespace("aws") == AWS
    assert backend.list_entries("aws") == [
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
    ]
    assert backend.list_namespaces() == ["aws"]


def test_age__set_entries__2(backend, secrets_path):
    """It stores the container encrypted and readable for the owner only."""
    backend.set_entries("aws", AWS)
    data = secrets_path.read_bytes()
    assert data.startswith(b"age-encryption.org/v1\n")
    assert b"s3cr3t" not in data
    assert stat.S_IMODE(secrets_path.stat().st_mode) == 0o600
    assert os.listdir(secrets_path.parent) == ["secrets.age"]


def test_age__set_entries__3(backend):
    """It keeps other entries and namespaces when adding values."""
    backend.set_entries("aws", AWS)
    backend.set_entries("aws", {"AWS_ACCESS_KEY_ID": "AKIA2"})
    backend.set_entries("multi", {"CERT": "-----BEGIN-----\n\tabc\n"})
    assert backend.get_namespace("aws") == {
        "AWS_ACCESS_KEY_ID": "AKIA2",
        "AWS_SECRET_ACCESS_KEY": "s3cr3t",
    }
    assert backend.get_namespace("multi") == {
        "CERT": "-----BEGIN-----\n\tabc\n"
    }
    assert backend.list_namespaces() == ["aws", "multi"]


def test_age__set_entries__4(backend, secrets_path):
    """It does not write anything when there is nothing to set."""
    backend.set_entries("aws", {})
    assert not secrets_path.exists()


def test_age__unset_entries__1(backend):
    """It removes a namespace with its last entry."""
    backend.set_entries("aws", AWS)
    backend.set_entries("github", {"GITHUB_TOKEN": "ghp"})
    backend.unset_entries("aws", ["AWS_ACCESS_KEY_ID"])
    assert backend.list_namespaces() == ["aws", "github"]
    backend.unset_entries("aws", ["AWS_SECRET_ACCESS_KEY", "NOT_THERE"])
    assert backend.list_namespaces() == ["github"]
    with pytest.raises(NamespaceNotFound):
        backend.get_namespace("aws")


def test_age__unset_entries__2(backend):
    """It leaves an empty store after removing everything."""
    backend.set_entries("aws", AWS)
    backend.unset_entries(
        "aws", ["AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"]
    )
    assert backend.list_namespaces() == []


def test_age__unset_entries__3(backend, secrets_path):
    """It complains about unknown namespaces without writing."""
    backend.set_entries("aws", AWS)
    before = secrets_path.read_bytes()
    with pytest.raises(NamespaceNotFound) as e:
        backend.unset_entries("gcp", ["X"])
    assert e.value.namespace == "gcp"
    assert secrets_path.read_bytes() == before


def test_age__load__1(tmp_path, secrets_path):
    """It reads a missing store as empty without needing an identity."""
    identity_path = tmp_path / "identity.txt"
    backend = AgeBackend(
        secrets_path, default_identity_path=identity_path
    )
    assert backend.list_namespaces() == []
    with pytest.raises(NamespaceNotFound):
        backend.list_entries("aws")
    assert not identity_path.exists()
    assert not secrets_path.exists()


def test_age__load__2(backend, secrets_path):
    """It reads an empty file as an empty store."""
    secrets_path.parent.mkdir()
    secrets_path.write_bytes(b"")
    assert backend.list_namespaces() == []


def test_age__load__3(backend, secrets_path, other_identity):
    """It refuses stores encrypted for another identity."""
    backend.set_entries("aws", AWS)
    other = AgeBackend(secrets_path, identity_path=other_identity.path)
    with pytest.raises(DecryptionError) as e:
        other.list_namespaces()
    assert e.value.path == str(secrets_path)
    assert e.value.identity == str(other_identity.path)


def test_age__load__4(tmp_path, secrets_path):
    """It generates the default identity when it first writes."""
    identity_path = tmp_path / "identity.txt"
    backend = AgeBackend(secrets_path, default_identity_path=identity_path)
    backend.set_entries("aws", AWS)
    assert identity_path.exists()
    again = AgeBackend(secrets_path, default_identity_path=identity_path)
    assert again.get_namespace("aws") == AWS


def test_age__replace__1(backend, secrets_path):
    """It keeps the old file if writing is interrupted before the rename."""
    backend.set_entries("aws", AWS)
    before = secrets_path.read_bytes()
    with mock.patch("os.replace", side_effect=OSError(28, "No space left")):
        with pytest.raises(IOFailure) as e:
            backend.set_entries("aws", {"AWS_ACCESS_KEY_ID": "changed"})
    assert e.value.reason == "No space left"
    assert e.value.operation == "write"
    assert secrets_path.read_bytes() == before
    assert os.listdir(secrets_path.parent) == ["secrets.age"]
    assert backend.get_namespace("aws") == AWS


def test_age__replace__2(backend, secrets_path):
    """It leaves no file behind if the first write is interrupted."""
    with mock.patch("os.replace", side_effect=KeyboardInterrupt):
        with pytest.raises(KeyboardInterrupt):
            backend.set_entries("aws", AWS)
    assert os.listdir(secrets_path.parent) == []


def test_age__replace__3(tmp_path):
    """It reports files that cannot be read."""
    path = tmp_path / "secrets.age"
    path.mkdir()
    with pytest.raises(IOFailure) as e:
        SecretsFile(path).read()
    assert e.value.operation == "read"


def test_age__concurrency__1(secrets_path, identity_path, identity):
    """Concurrent writers can lose each other's updates.

    Both processes load the same state; the one replacing the file last
    discards the other's change. The file itself stays intact.

    """
    first = AgeBackend(secrets_path, identity_path=identity_path)
    second = AgeBackend(secrets_path, identity_path=identity_path)
    first.set_entries("base", {"X": "1"})

    state_first = first.load()
    state_second = second.load()
    state_first.set("aws", "AWS_ACCESS_KEY_ID", "AKIA...")
    state_second.set("github", "GITHUB_TOKEN", "ghp")
    first.store(state_first)
    second.store(state_second)

    assert first.list_namespaces() == ["base", "github"]


def test_age__from_settings__1(ensure_config_dir, identity_path, identity):
    """It keeps its files in the configuration directory."""
    settings = Settings(age_identity=identity_path)
    backend = AgeBackend.from_settings(settings)
    assert ensure_config_dir.is_dir()
    assert backend.file.path == ensure_config_dir / "secrets.age"
    assert backend.identity.public_key == identity.public_key
    assert backend.default_identity_path == (
        ensure_config_dir / "identity.txt"
    )
