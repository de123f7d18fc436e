import argparse
import logging
import sys
import textwrap
from typing import Optional

import conspire
import conspire.group
import conspire.secrets.edit
import conspire.secrets.manage
from conspire._output import TerminalBackend, output
from conspire.config import Config
from conspire.log import setup_logging
from conspire.utils import terminate_gracefully


def version(config, **kw):
    print("conspire version {}".format(conspire.__version__))
    config.report(editor=True)


def main(args: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(
        description=(
            "conspire v{}: share OpenPGP encrypted secrets within groups"
        ).format(conspire.__version__),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.set_defaults(func=parser.print_usage)

    parser.add_argument(
        "-t",
        "--terse",
        action="store_true",
        help="Machine readable output.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Report what is going on.",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging (gpg-agent protocol traces).",
    )

    subparsers = parser.add_subparsers()

    # group
    group = subparsers.add_parser(
        "group",
        help=textwrap.dedent(
            """
            Manage the public keys of the members of a group. Secrets are
            encrypted for all members of their group."""
        ),
    )
    group.set_defaults(func=group.print_usage)

    gp = group.add_subparsers()

    p = gp.add_parser("list", help="List the members of a group.")
    p.add_argument(
        "group",
        nargs="?",
        default=None,
        help="Group to list (default: the vault's default group).",
    )
    p.set_defaults(func=conspire.group.list_members)

    p = gp.add_parser(
        "add", help="Add keys from the public keyring to a group."
    )
    p.add_argument("group", help="Group to add the keys to.")
    p.add_argument(
        "keyids",
        nargs="+",
        metavar="KEYID",
        help="16 hex digit id of a primary key or subkey.",
    )
    p.set_defaults(func=conspire.group.add_members)

    p = gp.add_parser(
        "delete",
        help="Delete keys from a group.",
        description="Delete keys from a group. Unlike `group add`, which "
        "also accepts subkey ids, keys are matched by their primary key "
        "id only.",
    )
    p.add_argument("group", help="Group to delete the keys from.")
    p.add_argument(
        "keyids",
        nargs="+",
        metavar="KEYID",
        help="16 hex digit primary key id. Subkey ids are not matched.",
    )
    p.set_defaults(func=conspire.group.delete_members)

    # secret
    secret = subparsers.add_parser(
        "secret",
        help=textwrap.dedent(
            """
            Show and edit encrypted secrets. Uses gpg-agent for passphrases
            if GPG_AGENT_INFO is set."""
        ),
    )
    secret.set_defaults(func=secret.print_usage)

    sp = secret.add_subparsers()

    p = sp.add_parser("show", help="Decrypt a secret to stdout.")
    p.add_argument("name", help="Secret to show.")
    p.set_defaults(func=conspire.secrets.manage.show)

    p = sp.add_parser(
        "edit",
        help=textwrap.dedent(
            """
            Encrypted secrets editor utility. Decrypts the secret, invokes
            the editor, and encrypts the secret again for the members of the
            group. If called with a non-existent name, a new secret is
            created.
        """
        ),
    )
    p.add_argument("name", help="Secret to edit.")
    p.add_argument(
        "--group",
        "-g",
        default=None,
        help="Group to encrypt for (default: the vault's default group).",
    )
    p.add_argument(
        "--editor",
        "-e",
        metavar="EDITOR",
        default=None,
        help="Invoke EDITOR to edit (default: $EDITOR or vi)",
    )
    p.set_defaults(func=conspire.secrets.edit.main)

    p = sp.add_parser(
        "recrypt",
        help="Re-encrypt a secret for the current members of a group.",
    )
    p.add_argument("name", help="Secret to re-encrypt.")
    p.add_argument(
        "--group",
        "-g",
        default=None,
        help="Group to encrypt for (default: the vault's default group).",
    )
    p.set_defaults(func=conspire.secrets.manage.recrypt)

    p = subparsers.add_parser("version", help="Show the version.")
    p.set_defaults(func=version)

    args = parser.parse_args(args)

    # Pass over to function
    if args.func.__name__ == "print_usage":
        args.func()
        sys.exit(1)

    output.backend = TerminalBackend()
    output.enable_debug = args.verbose
    if args.debug:
        setup_logging(["conspire"], logging.DEBUG)

    func_args = dict(args._get_kwargs())
    del func_args["func"]
    del func_args["debug"]
    terse = func_args.pop("terse")
    verbose = func_args.pop("verbose")
    try:
        with terminate_gracefully():
            func_args["config"] = Config.from_environment(
                terse=terse,
                verbose=verbose,
                editor=func_args.get("editor"),
            )
            return args.func(**func_args)
    except conspire.ReportingException as e:
        e.report()
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(1)
