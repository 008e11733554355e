import abc

from mailbridge.parts import AttachmentPart, TextPart

ADDRESS_FIELDS = ("From", "To", "Cc", "Bcc", "Reply-To")


def normalize_addresses(value):
    """
    Normalize an address specification into an ordered ``{email: name}``
    dict. Accepts a single address string, a list of addresses (each a
    string or an ``(email, name)`` pair) or a dict mapping emails to names.
    """
    if value is None or value == "":
        return {}
    if isinstance(value, dict):
        return {email: name or None for email, name in value.items()}
    if isinstance(value, str):
        return {value: None}

    addresses = {}
    for item in value:
        if isinstance(item, (tuple, list)):
            email, name = item
            addresses[email] = name or None
        else:
            addresses[item] = None
    return addresses


class MailMessage(abc.ABC):
    """
    Capability interface of a mail engine message.

    An engine message owns the headers, the top-level body and the ordered
    list of MIME child parts of one outgoing email, knows how to serialize
    itself to wire format and how to hand itself to a transport.
    """

    # ----- Charset -----

    @property
    @abc.abstractmethod
    def charset(self) -> str:
        ...

    @charset.setter
    @abc.abstractmethod
    def charset(self, value):
        ...

    # ----- Body and parts -----

    @property
    @abc.abstractmethod
    def body(self):
        """The top-level body, or None when the body lives in child parts."""
        ...

    @property
    @abc.abstractmethod
    def content_type(self):
        """Content type of the top-level body."""
        ...

    @abc.abstractmethod
    def set_body(self, body, content_type=None):
        """Set the top-level body, keeping the content type when omitted."""
        ...

    @abc.abstractmethod
    def set_content_type(self, content_type):
        ...

    @abc.abstractmethod
    def get_children(self) -> list:
        ...

    @abc.abstractmethod
    def set_children(self, parts):
        ...

    @abc.abstractmethod
    def add_part(self, content, content_type, charset=None):
        """Append a textual alternative part."""
        ...

    def is_attachment(self, part) -> bool:
        """Return True if the part is attachment-like rather than textual."""
        return not isinstance(part, TextPart)

    @abc.abstractmethod
    def attach(self, part: AttachmentPart):
        ...

    @abc.abstractmethod
    def embed(self, part: AttachmentPart) -> str:
        """Attach an inline part and return its ``cid:`` reference."""
        ...

    # ----- Headers -----

    @abc.abstractmethod
    def get_header(self, name) -> list:
        """Return all values of a header, in order."""
        ...

    @abc.abstractmethod
    def set_header(self, name, value):
        """Replace a header. A list value sets a multi-valued header."""
        ...

    @abc.abstractmethod
    def add_header(self, name, value):
        ...

    @abc.abstractmethod
    def remove_header(self, name):
        ...

    @abc.abstractmethod
    def get_addresses(self, field) -> dict:
        ...

    @abc.abstractmethod
    def set_addresses(self, field, value):
        ...

    # ----- Signing and plugins -----

    @abc.abstractmethod
    def attach_signer(self, signer):
        """Register a signer applied when the message is serialized."""
        ...

    @abc.abstractmethod
    def register_plugin(self, plugin):
        """Register a diagnostic plugin receiving engine log lines."""
        ...

    # ----- Output -----

    @abc.abstractmethod
    def message(self, with_bcc=True):
        """Return the message as a standard library ``email`` object."""
        ...

    @abc.abstractmethod
    def to_bytes(self) -> bytes:
        ...

    def to_string(self) -> str:
        return self.to_bytes().decode("utf-8", errors="replace")

    @abc.abstractmethod
    def send(self, connection=None) -> bool:
        ...
