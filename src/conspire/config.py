import configparser
import os
import pathlib

from configupdater import ConfigUpdater

from conspire import VaultReadError, output

DEFAULT_GROUP = "default"
DEFAULT_EDITOR = "vi"
VAULT_CONFIG = ".conspire.cfg"


def read_vault_config(vault_dir):
    """Read optional per-vault defaults from `.conspire.cfg`.

    The file is shared between everyone using the vault, e.g.::

        [conspire]
        group = operators
        editor = nano

    """
    path = pathlib.Path(vault_dir) / VAULT_CONFIG
    if not path.exists():
        return {}
    try:
        config = ConfigUpdater().read(str(path))
    except (OSError, configparser.Error) as e:
        raise VaultReadError.from_context(path, e) from e
    settings = {}
    if not config.has_section("conspire"):
        return settings
    for key in ("group", "editor"):
        option = config.get("conspire", key, fallback=None)
        if option is not None and option.value:
            settings[key] = option.value.strip()
    return settings


class Config(object):
    """Settings shared by all parts of one conspire invocation."""

    def __init__(
        self,
        gnupg_home,
        vault_dir,
        editor=DEFAULT_EDITOR,
        default_group=DEFAULT_GROUP,
        agent_info=None,
        terse=False,
        verbose=False,
    ):
        self.gnupg_home = pathlib.Path(gnupg_home)
        self.secret_keyring = self.gnupg_home / "secring.gpg"
        self.public_keyring = self.gnupg_home / "pubring.gpg"
        self.vault_dir = pathlib.Path(vault_dir)
        self.editor = editor
        self.default_group = default_group
        self.agent_info = agent_info or None
        self.terse = terse
        self.verbose = verbose

    @classmethod
    def from_environment(cls, environ=None, **overrides):
        """Resolve the configuration from environment variables.

        Explicit `overrides` (command line options) win over the
        environment, which wins over the vault's `.conspire.cfg`.
        """
        if environ is None:
            environ = os.environ
        gnupg_home = environ.get("GNUPGHOME") or os.path.join(
            os.path.expanduser("~"), ".gnupg"
        )
        vault_dir = environ.get("CONSPIRACY_VAULT") or os.getcwd()
        vault_config = read_vault_config(vault_dir)
        settings = dict(
            gnupg_home=gnupg_home,
            vault_dir=vault_dir,
            editor=(
                environ.get("EDITOR")
                or vault_config.get("editor")
                or DEFAULT_EDITOR
            ),
            default_group=vault_config.get("group", DEFAULT_GROUP),
            agent_info=environ.get("GPG_AGENT_INFO"),
        )
        settings.update(
            (key, value)
            for key, value in overrides.items()
            if value is not None
        )
        return cls(**settings)

    def report(self, editor=False):
        output.annotate("Configuration:", debug=True)
        output.tabular(
            "secret keyring", str(self.secret_keyring), debug=True
        )
        output.tabular(
            "public keyring", str(self.public_keyring), debug=True
        )
        output.tabular("vault", str(self.vault_dir), debug=True)
        if editor:
            output.tabular("editor", self.editor, debug=True)
