import configparser
import os
import pathlib
import sys
from typing import Optional

from configupdater import ConfigUpdater

from envchain import ConfigError, IOFailure
from envchain._output import output

DEFAULT_BACKEND = "age"
CONFIG_SECTION = "envchain"


def get_config_dir() -> pathlib.Path:
    """Return the per-user configuration directory of envchain."""
    override = os.environ.get("ENVCHAIN_CONFIG_DIR")
    if override:
        return pathlib.Path(override).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return pathlib.Path(xdg).expanduser() / "envchain"
    if sys.platform == "win32" and os.environ.get("APPDATA"):
        return pathlib.Path(os.environ["APPDATA"]) / "envchain"
    return pathlib.Path("~/.config/envchain").expanduser()


def default_identity_path() -> pathlib.Path:
    return get_config_dir() / "identity.txt"


class Settings:
    """Effective configuration of one invocation.

    Every option is taken from the first source that sets it: command line,
    environment, `config.cfg` in the configuration directory, built-in
    default.

    """

    def __init__(
        self,
        backend: str = DEFAULT_BACKEND,
        age_identity: Optional[pathlib.Path] = None,
        config_dir: Optional[pathlib.Path] = None,
    ):
        self.backend = backend
        self.age_identity = age_identity
        self.config_dir = config_dir or get_config_dir()

    @property
    def secrets_path(self) -> pathlib.Path:
        return self.config_dir / "secrets.age"

    @property
    def default_identity_path(self) -> pathlib.Path:
        return self.config_dir / "identity.txt"

    @property
    def config_file(self) -> pathlib.Path:
        return self.config_dir / "config.cfg"

    @classmethod
    def load(
        cls,
        backend: Optional[str] = None,
        age_identity: Optional[str] = None,
    ) -> "Settings":
        self = cls()
        file_options = self.read_config_file()

        backend = (
            backend
            or os.environ.get("ENVCHAIN_BACKEND")
            or file_options.get("backend")
            or DEFAULT_BACKEND
        )
        age_identity = (
            age_identity
            or os.environ.get("ENVCHAIN_AGE_IDENTITY")
            or file_options.get("age_identity")
        )
        self.backend = backend.strip().lower()
        if age_identity:
            self.age_identity = pathlib.Path(age_identity).expanduser()
        output.annotate(
            f"Using backend {self.backend}, identity "
            f"{self.age_identity or self.default_identity_path}",
            debug=True,
        )
        return self

    def read_config_file(self):
        if not self.config_file.exists():
            return {}
        output.annotate(f"Reading {self.config_file}", debug=True)
        config = ConfigUpdater()
        try:
            config.read(self.config_file)
        except configparser.Error as e:
            reason = str(e).splitlines()[0] if str(e) else type(e).__name__
            raise ConfigError.from_context(self.config_file, reason) from e
        except OSError as e:
            raise IOFailure.from_context(self.config_file, "read", e) from e
        if not config.has_section(CONFIG_SECTION):
            return {}
        options = {}
        for key, option in config[CONFIG_SECTION].items():
            if option.value:
                options[key] = option.value.strip()
        return options
