import logging
import mimetypes
import os

from mailbridge.composer import set_body
from mailbridge.conf import get_setting
from mailbridge.engines import get_engine
from mailbridge.exceptions import AttachmentError, DkimKeyError, InvalidPriorityError
from mailbridge.parts import AttachmentPart
from mailbridge.signers import DkimSigner, resolve_signer

logger = logging.getLogger("mailbridge")

PRIORITY_LABELS = {
    1: "Highest",
    2: "High",
    3: "Normal",
    4: "Low",
    5: "Lowest",
}


class Message:
    """
    An email message composed through the configured mail engine.

    Header properties read and write the engine message directly; mutating
    methods return the message itself so calls can be chained::

        Message().set_text_body("Hello").set_html_body("<b>Hello</b>")
    """

    def __init__(self, engine=None, mailer=None):
        # Engine name or MailMessage subclass; MESSAGE_ENGINE when None.
        self.engine = engine
        self.mailer = mailer
        self._engine_message = None

    @property
    def engine_message(self):
        """The underlying ``MailMessage`` engine instance, created on first use."""
        if self._engine_message is None:
            self._engine_message = self.create_engine_message()
        return self._engine_message

    def create_engine_message(self):
        engine = self.engine or get_setting("MESSAGE_ENGINE")
        if isinstance(engine, str):
            engine = get_engine(engine)
        return engine(charset=get_setting("CHARSET"))

    # ----- Headers -----

    @property
    def charset(self):
        return self.engine_message.charset

    @charset.setter
    def charset(self, value):
        self.engine_message.charset = value

    @property
    def subject(self):
        values = self.engine_message.get_header("Subject")
        return values[0] if values else None

    @subject.setter
    def subject(self, value):
        self.engine_message.set_header("Subject", value)

    @property
    def from_email(self):
        return self.engine_message.get_addresses("From")

    @from_email.setter
    def from_email(self, value):
        self.engine_message.set_addresses("From", value)

    @property
    def to(self):
        return self.engine_message.get_addresses("To")

    @to.setter
    def to(self, value):
        self.engine_message.set_addresses("To", value)

    @property
    def cc(self):
        return self.engine_message.get_addresses("Cc")

    @cc.setter
    def cc(self, value):
        self.engine_message.set_addresses("Cc", value)

    @property
    def bcc(self):
        return self.engine_message.get_addresses("Bcc")

    @bcc.setter
    def bcc(self, value):
        self.engine_message.set_addresses("Bcc", value)

    @property
    def reply_to(self):
        return self.engine_message.get_addresses("Reply-To")

    @reply_to.setter
    def reply_to(self, value):
        self.engine_message.set_addresses("Reply-To", value)

    @property
    def return_path(self):
        values = self.engine_message.get_header("Return-Path")
        return values[0].strip("<>") if values else None

    @return_path.setter
    def return_path(self, value):
        if value:
            self.engine_message.set_header("Return-Path", f"<{value}>")
        else:
            self.engine_message.remove_header("Return-Path")

    @property
    def priority(self):
        """Priority from 1 (highest) to 5 (lowest), rendered as X-Priority."""
        values = self.engine_message.get_header("X-Priority")
        if not values:
            return None
        return int(values[0].split()[0])

    @priority.setter
    def priority(self, value):
        if value is None:
            self.engine_message.remove_header("X-Priority")
            return
        if value not in PRIORITY_LABELS:
            raise InvalidPriorityError(f"Priority must be between 1 and 5, got {value!r}")
        self.engine_message.set_header("X-Priority", f"{value} ({PRIORITY_LABELS[value]})")

    @property
    def read_receipt_to(self):
        return self.engine_message.get_header("Disposition-Notification-To")

    @read_receipt_to.setter
    def read_receipt_to(self, value):
        if isinstance(value, str):
            value = [value]
        self.engine_message.set_header("Disposition-Notification-To", list(value or []))

    def get_header(self, name):
        return self.engine_message.get_header(name)

    def set_header(self, name, value):
        self.engine_message.set_header(name, value)
        return self

    def add_header(self, name, value):
        self.engine_message.add_header(name, value)
        return self

    def set_headers(self, headers):
        """Set several headers from a ``{name: value}`` dict."""
        for name, value in headers.items():
            self.set_header(name, value)
        return self

    # ----- Body -----

    def set_text_body(self, text):
        set_body(self.engine_message, text, "text/plain")
        return self

    def set_html_body(self, html):
        set_body(self.engine_message, html, "text/html")
        return self

    # ----- Attachments -----

    @staticmethod
    def _read_file(path):
        try:
            with open(path, "rb") as fp:
                return fp.read()
        except OSError as exc:
            raise AttachmentError(f"Unable to read file '{path}': {exc}", path=path) from exc

    @staticmethod
    def _make_part(content, file_name=None, content_type=None):
        if not content_type:
            content_type = None
            if file_name:
                content_type, _ = mimetypes.guess_type(file_name)
            content_type = content_type or "application/octet-stream"
        return AttachmentPart(content, file_name=file_name, content_type=content_type)

    def attach(self, path, file_name=None, content_type=None):
        """Attach the file at ``path``."""
        content = self._read_file(path)
        part = self._make_part(content, file_name or os.path.basename(path), content_type)
        self.engine_message.attach(part)
        return self

    def attach_content(self, content, file_name=None, content_type=None):
        """Attach in-memory ``content`` (bytes or text)."""
        part = self._make_part(content, file_name, content_type)
        self.engine_message.attach(part)
        return self

    def embed(self, path, file_name=None, content_type=None):
        """Embed the file at ``path`` inline and return its ``cid:`` reference."""
        content = self._read_file(path)
        part = self._make_part(content, file_name or os.path.basename(path), content_type)
        return self.engine_message.embed(part)

    def embed_content(self, content, file_name=None, content_type=None):
        """Embed in-memory ``content`` inline and return its ``cid:`` reference."""
        part = self._make_part(content, file_name, content_type)
        return self.engine_message.embed(part)

    # ----- Signing -----

    def get_dkim_signer(self, private_key, domain, selector):
        return DkimSigner(private_key, domain, selector)

    def set_dkim(self, private_key_path, domain, selector):
        """Sign the message with DKIM using the private key file at the given path."""
        try:
            with open(private_key_path, "rb") as fp:
                private_key = fp.read()
        except OSError as exc:
            raise DkimKeyError(
                f"Unable to read DKIM private key '{private_key_path}': {exc}",
                path=private_key_path,
            ) from exc
        self.engine_message.attach_signer(self.get_dkim_signer(private_key, domain, selector))
        return self

    def add_signature(self, signer):
        """
        Attach a signer. Accepts a signer object, a ``DkimConfig``, a dict
        such as ``{"type": "dkim", "key": ..., "domain": ..., "selector": ...}``
        or a callable returning one of these.
        """
        self.engine_message.attach_signer(resolve_signer(signer))
        return self

    def set_signature(self, signers):
        """Attach several signers at once."""
        if not isinstance(signers, (list, tuple)):
            signers = [signers]
        for signer in signers:
            self.add_signature(signer)
        return self

    # ----- Output -----

    def to_string(self):
        return self.engine_message.to_string()

    def __str__(self):
        return self.to_string()

    def send(self, mailer=None):
        """Send the message through ``mailer`` (the default mailer if omitted)."""
        if mailer is None:
            mailer = self.mailer
        if mailer is None:
            from mailbridge.mailer import get_mailer
            mailer = get_mailer()
        return mailer.send(self)
