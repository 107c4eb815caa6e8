class NodeKillerError(Exception):
    """Base class for nodekiller errors."""


class InvocationError(NodeKillerError):
    """An external tool could not be run or exited unsuccessfully."""

    def __init__(self, message, returncode=None):
        super().__init__(message)
        self.returncode = returncode


class ProcessGone(NodeKillerError):
    """The process exited while it was being inspected."""
