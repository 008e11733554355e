class MailbridgeError(Exception):
    """Base class for errors raised by the mailbridge wrapper layer."""


class UnknownEngineError(MailbridgeError, ValueError):
    """Raised when a message engine name is not registered."""


class InvalidSignerError(MailbridgeError, TypeError):
    """Raised when a signer description cannot be resolved to a signer."""


class DkimKeyError(MailbridgeError):
    """Raised when a DKIM private key file cannot be read."""

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class AttachmentError(MailbridgeError):
    """Raised when an attachment or embedded file cannot be read."""

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class InvalidPriorityError(MailbridgeError, ValueError):
    """Raised when a message priority is outside the 1-5 range."""


class HeaderInjectionError(MailbridgeError, ValueError):
    """Raised when a header value contains a newline."""
