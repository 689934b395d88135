import sys


class Output(object):
    """Manage the output of various parts of envchain to achieve
    consistency wrt to formatting and display.

    Only diagnostics go through here. Data requested by the user (lists of
    namespaces, values) is printed to stdout directly.
    """

    enable_debug = False

    def __init__(self, backend):
        self.backend = backend

    def line(self, message, debug=False, **format):
        if debug and not self.enable_debug:
            return
        self.backend.line(message, **format)

    def annotate(self, message, debug=False, **format):
        if debug and not self.enable_debug:
            return
        self.line(message, **format)

    def tabular(self, key, value, separator=": ", debug=False, **kw):
        if debug and not self.enable_debug:
            return
        message = key.rjust(10) + separator + value
        self.annotate(message, **kw)

    def step(self, context, message, debug=False, **format):
        if debug and not self.enable_debug:
            return
        _format = {"bold": True}
        _format.update(format)
        self.line("{}: {}".format(context, message), **_format)

    def warn(self, message, debug=False):
        self.step("WARNING", message, debug=debug, yellow=True)

    def error(self, message, debug=False):
        if debug and not self.enable_debug:
            return
        self.step("ERROR", message, red=True)


class TerminalBackend(object):

    def __init__(self, file=None):
        import py.io

        self._tw = py.io.TerminalWriter(file or sys.stderr)

    def line(self, message, **format):
        self._tw.line(message, **format)


class NullBackend(object):

    def line(self, message, **format):
        pass


output = Output(NullBackend())
