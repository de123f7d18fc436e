import os.path

from ._output import output

with open(os.path.dirname(__file__) + "/version.txt") as f:
    __version__ = f.read().strip()


class ReportingException(Exception):
    """Exceptions that support user-readable reporting."""

    def __str__(self):
        raise NotImplementedError()

    def report(self):
        raise NotImplementedError()


class FileLockedError(ReportingException):
    """A file is already locked and we do not want to block."""

    filename: str

    @classmethod
    def from_context(cls, filename):
        self = cls()
        self.filename = str(filename)
        return self

    def __str__(self):
        return "File already locked: {}".format(self.filename)

    def report(self):
        output.error(str(self))
        output.tabular(
            "hint", "Is another conspire command running on this vault?"
        )


class VaultReadError(ReportingException):
    """A group, keyring, secret or config file is missing or malformed."""

    path: str
    error: str

    @classmethod
    def from_context(cls, path, error):
        self = cls()
        self.path = str(path)
        self.error = str(error)
        return self

    def __str__(self):
        return f"Couldn't read {self.path}: {self.error}"

    def report(self):
        output.error(f"Couldn't read {self.path}")
        output.tabular("message", self.error, red=True)


class SecretNotFound(VaultReadError):
    """The requested secret does not exist in the vault."""

    name: str

    @classmethod
    def from_context(cls, name, path):
        self = super().from_context(path, "no such secret")
        self.name = name
        return self

    def __str__(self):
        return f"Secret {self.name} not found at {self.path}"

    def report(self):
        output.error(f"Secret {self.name} not found")
        output.tabular("path", self.path, red=True)


class KeyIdFormatError(ValueError):
    """A key id is not 16 hex digits (8 raw bytes)."""


class InvalidNameError(ReportingException):
    """Group and secret names must be plain file names inside the vault."""

    name: str

    @classmethod
    def from_context(cls, name):
        self = cls()
        self.name = name
        return self

    def __str__(self):
        return f"Invalid name: {self.name!r}"

    def report(self):
        output.error(str(self))
        output.tabular(
            "hint",
            "Names may not be empty, contain '/' or start with '.'",
        )


class NoUsableKey(ReportingException):
    """None of the local secret keys could decrypt a secret."""

    keyids: str

    @classmethod
    def from_context(cls, keyids):
        self = cls()
        self.keyids = ", ".join("{:016X}".format(k) for k in keyids)
        return self

    def __str__(self):
        if not self.keyids:
            return "No matching secret key"
        return f"No usable secret key among {self.keyids}"

    def report(self):
        output.error("No usable secret key to decrypt the secret")
        output.tabular("keys", self.keyids or "(none)", red=True)


class PassphraseExhausted(NoUsableKey):
    """No valid passphrase was given for any candidate key."""

    attempts: int

    @classmethod
    def from_context(cls, keyids, attempts):
        self = super().from_context(keyids)
        self.attempts = attempts
        return self

    def __str__(self):
        return (
            f"No valid passphrase after {self.attempts} tries "
            f"for {self.keyids}"
        )

    def report(self):
        output.error(
            f"No valid passphrase after {self.attempts} tries. Quitting."
        )
        output.tabular("keys", self.keyids, red=True)


class PassphraseCancelled(NoUsableKey):
    """Passphrase entry was cancelled or no passphrase is available."""

    def __str__(self):
        return f"No passphrase provided for {self.keyids}"

    def report(self):
        output.error("No passphrase provided")
        output.tabular("keys", self.keyids, red=True)


class AgentError(ReportingException):
    """Talking to gpg-agent failed."""

    address: str
    error: str

    @classmethod
    def from_context(cls, address, error):
        self = cls()
        self.address = str(address)
        self.error = str(error)
        return self

    def __str__(self):
        return f"gpg-agent at {self.address}: {self.error}"

    def report(self):
        output.error("Error while talking to gpg-agent")
        output.tabular("address", self.address, red=True)
        output.tabular("message", self.error, red=True)


class EditorFailure(ReportingException):
    """The external editor could not be run or exited non-zero."""

    command: str
    filename: str
    error: str

    @classmethod
    def from_context(cls, command, filename, error):
        self = cls()
        self.command = command
        self.filename = str(filename)
        self.error = str(error)
        return self

    def __str__(self):
        return (
            f"Couldn't edit temp file {self.filename} with editor "
            f"{self.command}: {self.error}"
        )

    def report(self):
        output.error("Error while running the editor")
        output.tabular("command", self.command, red=True)
        output.tabular("file", self.filename)
        output.tabular("message", self.error)


class NoRecipientsError(ReportingException):
    """A secret can not be encrypted for a group without members."""

    group: str

    @classmethod
    def from_context(cls, group):
        self = cls()
        self.group = group
        return self

    def __str__(self):
        return f"Group {self.group} has no members to encrypt for"

    def report(self):
        output.error(str(self))
        output.tabular(
            "hint", f"Add members with: conspire group add {self.group} KEYID"
        )


class EncryptionError(ReportingException):
    """A member of the group holds a key that can not encrypt."""

    group: str
    error: str

    @classmethod
    def from_context(cls, group, error):
        self = cls()
        self.group = group
        self.error = str(error)
        return self

    def __str__(self):
        return f"Couldn't encrypt for group {self.group}: {self.error}"

    def report(self):
        output.error(f"Couldn't encrypt for group {self.group}")
        output.tabular("message", self.error, red=True)
        output.tabular(
            "hint", f"Check the members with: conspire group list {self.group}"
        )


class PersistError(ReportingException):
    """A replacement group or secret file could not be written."""

    path: str
    error: str

    @classmethod
    def from_context(cls, path, error):
        self = cls()
        self.path = str(path)
        self.error = str(error)
        return self

    def __str__(self):
        return f"Couldn't write {self.path}: {self.error}"

    def report(self):
        output.error(f"Couldn't write {self.path}")
        output.tabular("message", self.error, red=True)
        output.tabular("note", "The previous file was left untouched.")
