"""Minimal Assuan client for asking a running gpg-agent for passphrases.

Only the two commands conspire needs are implemented: GET_PASSPHRASE to
obtain (and let the agent cache) a passphrase, and CLEAR_PASSPHRASE to
evict a cached value that turned out to be wrong.
"""

import logging
import socket
import urllib.parse

from conspire import AgentError

log = logging.getLogger(__name__)

# gpg-error codes (the low 16 bits of an ERR code) that mean "no
# passphrase" rather than "something is broken".
GPG_ERR_NO_DATA = 58
GPG_ERR_CANCELED = 99
GPG_ERR_FULLY_CANCELED = 198
NO_PASSPHRASE_CODES = {
    GPG_ERR_NO_DATA,
    GPG_ERR_CANCELED,
    GPG_ERR_FULLY_CANCELED,
}


def escape(value):
    if not value:
        return "X"
    return urllib.parse.quote_plus(value, safe="")


def socket_path(agent_info):
    """Extract the socket path from a `path:pid:protocol` string."""
    path = (agent_info or "").split(":", 2)[0]
    if not path:
        raise AgentError.from_context(
            repr(agent_info), "GPG_AGENT_INFO does not name a socket"
        )
    return path


class AgentConnection(object):

    def __init__(self, sock, address="gpg-agent"):
        self.sock = sock
        self.address = address
        self._reader = sock.makefile("rb")
        greeting = self._readline()
        if not greeting.startswith("OK"):
            self.close()
            raise AgentError.from_context(
                address, "didn't get OK; got {!r}".format(greeting)
            )

    @classmethod
    def from_agent_info(cls, agent_info):
        path = socket_path(agent_info)
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(path)
        except OSError as e:
            sock.close()
            raise AgentError.from_context(path, e) from e
        log.debug("connected to %s", path)
        return cls(sock, path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        self._reader.close()
        self.sock.close()

    def _send(self, line):
        log.debug("> %s", line)
        try:
            self.sock.sendall(line.encode("utf-8") + b"\n")
        except OSError as e:
            raise AgentError.from_context(self.address, e) from e

    def _readline(self):
        try:
            line = self._reader.readline()
        except OSError as e:
            raise AgentError.from_context(self.address, e) from e
        if not line:
            raise AgentError.from_context(
                self.address, "connection closed by agent"
            )
        return line.rstrip(b"\r\n").decode("utf-8", errors="replace")

    def _response(self):
        """Read lines up to the final OK/ERR, returning (status, data)."""
        data = []
        while True:
            line = self._readline()
            if line.startswith("D "):
                data.append(urllib.parse.unquote(line[2:]))
                continue
            if line.startswith("S ") or line.startswith("#"):
                log.debug("< %s", line)
                continue
            if line.startswith("INQUIRE"):
                log.debug("< %s", line)
                self._send("END")
                continue
            if line == "OK" or line.startswith("OK "):
                return line, "".join(data)
            if line.startswith("ERR"):
                log.debug("< %s", line)
                return line, None
            raise AgentError.from_context(
                self.address, "unexpected response {!r}".format(line)
            )

    def get_passphrase(self, request):
        """Return the passphrase for `request` or None if there is none."""
        options = "--no-ask " if request.no_ask else ""
        self._send(
            "GET_PASSPHRASE {}{} {} {} {}".format(
                options,
                escape(request.cache_id),
                escape(request.error),
                escape(request.prompt),
                escape(request.description),
            )
        )
        status, data = self._response()
        if status.startswith("OK "):
            log.debug("< OK [passphrase]")
            try:
                return bytes.fromhex(status[3:].strip()).decode("utf-8")
            except ValueError as e:
                raise AgentError.from_context(
                    self.address, "malformed passphrase reply: {}".format(e)
                )
        if status == "OK":
            log.debug("< OK [passphrase]")
            return data
        fields = status.split(" ", 2)
        try:
            code = int(fields[1]) & 0xFFFF
        except (IndexError, ValueError):
            code = None
        if code in NO_PASSPHRASE_CODES:
            return None
        raise AgentError.from_context(self.address, status)

    def clear_passphrase(self, cache_id):
        self._send("CLEAR_PASSPHRASE {}".format(escape(cache_id)))
        status, _ = self._response()
        if not status.startswith("OK"):
            raise AgentError.from_context(self.address, status)
