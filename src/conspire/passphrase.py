"""Obtain passphrases to unlock secret keys.

A passphrase comes either directly from the user's terminal or, when
GPG_AGENT_INFO is set, from a running gpg-agent which asks the user
through its pinentry and caches the answer.
"""

import getpass
import sys

from conspire import (
    NoUsableKey,
    PassphraseCancelled,
    PassphraseExhausted,
    output,
)
from conspire.agent import AgentConnection
from conspire.keyring import format_keyid

MAX_ATTEMPTS = 3
WRONG_PASSPHRASE = "Wrong passphrase. Please try again."


class PassphraseRequest(object):
    """What a prompt needs to know to ask for one key's passphrase."""

    def __init__(
        self, cache_id, subject, prompt="Passphrase:", error="", no_ask=False
    ):
        self.cache_id = cache_id
        self.subject = subject
        self.prompt = prompt
        self.error = error
        # Only answer from the agent's cache, never ask the user.
        self.no_ask = no_ask

    @property
    def description(self):
        return "You need a passphrase to unlock the secret key for {}".format(
            self.subject
        )

    @classmethod
    def for_key(cls, entry):
        keyid = format_keyid(entry.keyid)
        names = " ".join(entry.identities)
        return cls(cache_id=keyid, subject='"{}" ({})'.format(names, keyid))


class DirectPrompt(object):
    """Read passphrases from the controlling terminal without echo."""

    def ask(self, request):
        try:
            return getpass.getpass(
                "Enter passphrase for {}: ".format(request.subject)
            )
        except EOFError:
            return None

    def reject(self, request):
        print(WRONG_PASSPHRASE, file=sys.stderr)

    def close(self):
        pass


class AgentPrompt(object):
    """Delegate passphrase entry and caching to gpg-agent."""

    def __init__(self, agent_info, connect=AgentConnection.from_agent_info):
        self.agent_info = agent_info
        self._connect = connect
        self._connection = None

    @property
    def connection(self):
        if self._connection is None:
            output.annotate("Will try GPG agent.", debug=True)
            self._connection = self._connect(self.agent_info)
        return self._connection

    def ask(self, request):
        return self.connection.get_passphrase(request)

    def reject(self, request):
        # Never let the agent hand out the same wrong value again.
        self.connection.clear_passphrase(request.cache_id)

    def close(self):
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class PassphraseBroker(object):
    """Unlock the first of several candidate secret keys.

    Each candidate gets `max_attempts` passphrase attempts. The first key
    that unlocks wins; if none does the whole operation fails.
    """

    def __init__(self, engine, prompt, max_attempts=MAX_ATTEMPTS):
        self.engine = engine
        self.prompt = prompt
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, config, engine):
        if config.agent_info:
            prompt = AgentPrompt(config.agent_info)
        else:
            prompt = DirectPrompt()
        return cls(engine, prompt)

    def close(self):
        self.prompt.close()

    def unlock(self, candidates):
        if not candidates:
            raise NoUsableKey.from_context([])
        for entry in candidates:
            unlocked = self._unlock(entry)
            if unlocked is not None:
                return unlocked
        raise PassphraseExhausted.from_context(
            [entry.keyid for entry in candidates], self.max_attempts
        )

    def _unlock(self, entry):
        keyid = format_keyid(entry.keyid)
        if not entry.is_protected:
            output.annotate(
                "Key {} is not protected by a passphrase.".format(keyid),
                debug=True,
            )
            return self.engine.unlock(entry, None)
        request = PassphraseRequest.for_key(entry)
        for _ in range(self.max_attempts):
            passphrase = self.prompt.ask(request)
            if passphrase is None:
                raise PassphraseCancelled.from_context([entry.keyid])
            unlocked = self.engine.unlock(entry, passphrase)
            if unlocked is not None:
                output.annotate("Unlocked key {}.".format(keyid), debug=True)
                return unlocked
            self.prompt.reject(request)
            request.error = WRONG_PASSPHRASE
        output.annotate(
            "No valid passphrase for {} after {} tries.".format(
                keyid, self.max_attempts
            )
        )
        return None
