import pytest

import envchain.identity
from envchain._output import NullBackend, output


@pytest.fixture(autouse=True)
def ensure_config_dir(monkeypatch, tmp_path):
    """Never touch the real configuration of the user running the tests."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("ENVCHAIN_CONFIG_DIR", str(config_dir))
    for name in [
        "ENVCHAIN_BACKEND",
        "ENVCHAIN_AGE_IDENTITY",
        "ENVCHAIN_AGE_IDENTITY_PASSPHRASE",
    ]:
        monkeypatch.delenv(name, raising=False)
    return config_dir


@pytest.fixture(autouse=True)
def reset_output():
    yield
    output.backend = NullBackend()
    output.enable_debug = False


@pytest.fixture(autouse=True)
def reset_passphrases():
    yield
    envchain.identity.known_passphrases.clear()


@pytest.fixture
def identity_path(tmp_path):
    return tmp_path / "keys" / "identity.txt"


@pytest.fixture
def identity(identity_path):
    return envchain.identity.generate_identity(identity_path)


@pytest.fixture
def other_identity(tmp_path):
    return envchain.identity.generate_identity(tmp_path / "other.txt")
