"""Manage the members of the groups stored in a vault."""

from typing import List, Tuple

from conspire import KeyIdFormatError, output
from conspire.keyring import KeyEntry, KeyStore, format_keyid, parse_keyid

TABLE_HEADER = " Key Id          Key Fingerprint / Identity"
TABLE_RULE = "-" * 16 + " " + "-" * 56
IDENTITY_INDENT = " " * 17


def _fingerprint_halves(entry):
    fingerprint = entry.fingerprint.hex().upper()
    middle = len(fingerprint) // 2
    return fingerprint[:middle], fingerprint[middle:]


def format_members(members: List[KeyEntry], terse=False) -> List[str]:
    """Render group members either as a table or machine readable lines."""
    lines = []
    if terse:
        for entry in members:
            first, second = _fingerprint_halves(entry)
            lines.append(
                "{};{}:{};{}".format(
                    format_keyid(entry.keyid),
                    first,
                    second,
                    ",".join(entry.identities),
                )
            )
        return lines
    lines.append("")
    lines.append(TABLE_HEADER)
    lines.append(TABLE_RULE)
    for entry in members:
        first, second = _fingerprint_halves(entry)
        lines.append(
            "{} {} {}".format(format_keyid(entry.keyid), first, second)
        )
        for label in entry.identities:
            lines.append(IDENTITY_INDENT + label)
    lines.append("")
    return lines


class GroupManager(object):
    """List, add and delete the public keys of a group."""

    def __init__(self, keystore: KeyStore):
        self.keystore = keystore

    def list(self, group) -> List[KeyEntry]:
        return self.keystore.load_group(group)

    def add(self, group, candidate_ids) -> Tuple[int, int]:
        added = 0
        skipped = 0
        with self.keystore.locked():
            members = self.keystore.load_group(group, missing_ok=True)
            if members is None:
                output.annotate(
                    "Group file {} doesn't exist. Will create it.".format(
                        group
                    ),
                    debug=True,
                )
                members = []
            public_keys = self.keystore.load_public_keys()
            output.annotate(
                "Adding users to group {}".format(group), debug=True
            )
            fingerprints = {member.fingerprint for member in members}
            for candidate in candidate_ids:
                try:
                    keyid = parse_keyid(candidate)
                except KeyIdFormatError:
                    output.annotate(
                        "Key {} is not a valid KeyID. Skipping.".format(
                            candidate
                        ),
                        debug=True,
                    )
                    skipped += 1
                    continue
                if any(member.matches(keyid) for member in members):
                    output.annotate(
                        "Key id {} is already in the group. Skipped.".format(
                            format_keyid(keyid)
                        ),
                        debug=True,
                    )
                    skipped += 1
                    continue
                found = False
                for entry in public_keys:
                    if not entry.matches(keyid):
                        continue
                    found = True
                    if entry.fingerprint in fingerprints:
                        continue
                    output.annotate(
                        "Adding key id {} ({})".format(
                            format_keyid(keyid),
                            ", ".join(entry.identities[:1]),
                        ),
                        debug=True,
                    )
                    members.append(entry)
                    fingerprints.add(entry.fingerprint)
                    added += 1
                if not found:
                    output.annotate(
                        "Key id {} is not in the public keyring. "
                        "Skipped.".format(format_keyid(keyid)),
                        debug=True,
                    )
                    skipped += 1
            if added:
                self.keystore.save_group(group, members)
        return added, skipped

    def delete(self, group, candidate_ids) -> Tuple[int, int]:
        """Remove members by primary key id. Subkey ids are not matched."""
        deleted = 0
        skipped = 0
        with self.keystore.locked():
            members = self.keystore.load_group(group)
            output.annotate(
                "Deleting users from group {}".format(group), debug=True
            )
            for candidate in candidate_ids:
                try:
                    keyid = parse_keyid(candidate)
                except KeyIdFormatError:
                    output.annotate(
                        "Key {} is not a valid KeyID. Skipping.".format(
                            candidate
                        ),
                        debug=True,
                    )
                    skipped += 1
                    continue
                retained = [m for m in members if m.keyid != keyid]
                removed = len(members) - len(retained)
                if not removed:
                    output.annotate(
                        "Key id {} is not in the group. Skipped.".format(
                            format_keyid(keyid)
                        ),
                        debug=True,
                    )
                    skipped += 1
                    continue
                output.annotate(
                    "Deleting key id {}".format(format_keyid(keyid)),
                    debug=True,
                )
                deleted += removed
                members = retained
            if deleted:
                self.keystore.save_group(group, members)
        return deleted, skipped


def list_members(group, config, **kw):
    group = group or config.default_group
    config.report()
    members = GroupManager(KeyStore(config)).list(group)
    for line in format_members(members, terse=config.terse):
        print(line)


def add_members(group, keyids, config, **kw):
    added, skipped = GroupManager(KeyStore(config)).add(group, keyids)
    print("Added {} and skipped {}".format(added, skipped))


def delete_members(group, keyids, config, **kw):
    deleted, skipped = GroupManager(KeyStore(config)).delete(group, keyids)
    print("Deleted {} and skipped {}".format(deleted, skipped))
