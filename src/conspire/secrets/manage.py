from conspire import output
from conspire.keyring import format_keyid

from . import SecretStore
from .edit import EditSession


def show(name, config, **kw):
    """Decrypt a secret and write it to stdout."""
    config.report()
    with SecretStore(config) as store:
        store.show(name)


def recrypt(name, group, config, **kw):
    """Re-encrypt a secret for the current members of its group.

    Members removed from the group since the last write lose access to
    the regenerated file.

    """
    group = group or config.default_group
    config.report()
    with SecretStore(config) as store:
        before = store.recipients(name)
        EditSession(store, name, group).recrypt()
        after = store.recipients(name)
    revoked = sorted(set(before) - set(after))
    output.annotate(
        "Re-encrypted {} for group {}.".format(name, group), debug=True
    )
    for keyid in revoked:
        output.tabular("revoked", format_keyid(keyid), debug=True)
