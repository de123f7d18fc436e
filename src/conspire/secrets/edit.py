"""Securely edit encrypted secret files."""

import contextlib
import os
import pathlib
import shlex
import subprocess
import tempfile

from conspire import EditorFailure, PersistError, SecretNotFound, output
from conspire.utils import check_name, terminate_gracefully

from . import SecretStore

CLEARTEXT_MODE = 0o600


@contextlib.contextmanager
def temporary_cleartext(directory, name, content: bytes):
    """Run the associated block with a decrypted temporary file.

    The file is only readable by the owner and is removed however the
    block is left, including SIGTERM and SIGHUP.
    """
    with terminate_gracefully():
        try:
            fd, filename = tempfile.mkstemp(
                prefix=".tmp.{}.".format(check_name(name)),
                dir=str(directory),
            )
        except OSError as e:
            raise PersistError.from_context(directory, e) from e
        try:
            os.fchmod(fd, CLEARTEXT_MODE)
            with os.fdopen(fd, "wb") as clearfile:
                clearfile.write(content)
            yield pathlib.Path(filename)
        finally:
            try:
                os.unlink(filename)
            except FileNotFoundError:
                pass
            except OSError as e:
                output.error(
                    "Couldn't remove unencrypted temp file {}: {}".format(
                        filename, e
                    )
                )
                output.tabular("hint", "You should remove it manually.")


class EditSession(object):
    """Edit or re-encrypt one secret for the members of one group."""

    def __init__(self, store: SecretStore, name, group, editor_cmd=None):
        self.store = store
        self.name = check_name(name)
        self.group = group
        self.editor_cmd = editor_cmd

    def current(self) -> bytes:
        try:
            return self.store.get(self.name)
        except SecretNotFound:
            output.annotate(
                "Creating new secret {}.".format(self.name), debug=True
            )
            return b""

    def edit(self):
        cleartext = self.current()
        with temporary_cleartext(
            self.store.config.vault_dir, self.name, cleartext
        ) as clearfile:
            self.run_editor(clearfile)
            cleartext = clearfile.read_bytes()
            self.store.write(self.name, cleartext, self.group)

    def run_editor(self, filename):
        args = [self.editor_cmd + " " + shlex.quote(str(filename))]
        output.annotate(
            "Running editor with command: {}".format(args[0]), debug=True
        )
        try:
            subprocess.check_call(args, shell=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise EditorFailure.from_context(
                self.editor_cmd, filename, e
            ) from e

    def recrypt(self):
        """Re-encrypt the secret for the group's current members."""
        cleartext = self.store.get(self.name)
        self.store.write(self.name, cleartext, self.group)


def main(name, group, editor, config, **kw):
    """Secrets editor console script.

    The main focus here is to avoid having unencrypted files lying around
    in the vault once the editor is done.

    """
    config.report(editor=True)
    with SecretStore(config) as store:
        EditSession(
            store, name, group or config.default_group, editor or config.editor
        ).edit()
