import sys


class Output(object):
    """Diagnostics of all conspire commands.

    Messages flagged with `debug=True` are only shown in verbose mode.
    """

    enable_debug = False

    def __init__(self, backend):
        self.backend = backend

    def line(self, message, debug=False, **format):
        if debug and not self.enable_debug:
            return
        self.backend.line(message, **format)

    def annotate(self, message, debug=False, **format):
        for line in message.splitlines() or [""]:
            self.line(line, debug=debug, **format)

    def tabular(self, key, value, separator=": ", debug=False, **kw):
        self.annotate(key.rjust(10) + separator + value, debug=debug, **kw)

    def step(self, context, message, debug=False, **format):
        _format = {"bold": True}
        _format.update(format)
        self.line("{}: {}".format(context, message), debug=debug, **_format)

    def error(self, message, debug=False):
        self.step("ERROR", message, debug=debug, red=True)


class TerminalBackend(object):
    """Diagnostics go to stderr so stdout only ever carries data."""

    def __init__(self, file=None):
        import py.io

        self._tw = py.io.TerminalWriter(file or sys.stderr)

    def line(self, message, **format):
        self._tw.line(message, **format)


class NullBackend(object):

    def line(self, message, **format):
        pass


class TestBackend(object):
    """Collect everything written so tests can inspect it."""

    def __init__(self):
        self.output = ""

    def line(self, message, **format):
        self.output += message + "\n"


output = Output(NullBackend())
