import logging
from email import encoders
from email.charset import Charset
from email.generator import BytesGenerator, Generator
from email.header import Header
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from io import BytesIO, StringIO

from django.conf import settings
from django.core.mail import EmailMessage, get_connection
from django.core.mail.utils import DNS_NAME

from mailbridge.engines.base import ADDRESS_FIELDS, MailMessage, normalize_addresses
from mailbridge.exceptions import HeaderInjectionError
from mailbridge.parts import TextPart

logger = logging.getLogger("mailbridge")

# RFC 5322 line length limit; longer lines force quoted-printable.
MAX_LINE_LENGTH = 998

class WireMixin:
    """
    Serialization helpers accepting the ``linesep`` argument Django's email
    backends pass when flattening a message.
    """

    def as_string(self, unixfrom=False, linesep="\n", policy=None):
        fp = StringIO()
        g = Generator(fp, mangle_from_=False, policy=policy)
        g.flatten(self, unixfrom=unixfrom, linesep=None if policy else linesep)
        return fp.getvalue()

    def as_bytes(self, unixfrom=False, linesep="\n", policy=None):
        fp = BytesIO()
        g = BytesGenerator(fp, mangle_from_=False, policy=policy)
        g.flatten(self, unixfrom=unixfrom, linesep=None if policy else linesep)
        return fp.getvalue()


class WireText(WireMixin, MIMEText):
    pass


class WireMultipart(WireMixin, MIMEMultipart):
    pass


class WireBase(WireMixin, MIMEBase):
    pass


class PreparedEmail(EmailMessage):
    """
    Django EmailMessage carrying an already built MIME message, so that any
    configured Django email backend can deliver it unchanged.
    """

    def __init__(self, mime, **kwargs):
        super().__init__(**kwargs)
        self.mime = mime

    def message(self, *args, **kwargs):
        return self.mime


class DjangoMailMessage(MailMessage):
    """
    Mail engine message rendered with the standard library ``email`` package
    and delivered through Django's email backends.
    """

    def __init__(self, charset=None):
        self._charset = charset or settings.DEFAULT_CHARSET
        self._body = None
        self._content_type = "text/plain"
        self._children = []
        self._headers = []
        self._addresses = {field: {} for field in ADDRESS_FIELDS}
        self._signers = []
        self._plugins = []

    def __repr__(self):
        subject = self.get_header("Subject")
        return f"<DjangoMailMessage subject={subject[0] if subject else ''!r}>"

    # ----- Charset -----

    @property
    def charset(self):
        return self._charset

    @charset.setter
    def charset(self, value):
        self._charset = value
        for part in self._children:
            if isinstance(part, TextPart):
                part.charset = value

    # ----- Body and parts -----

    @property
    def body(self):
        return self._body

    @property
    def content_type(self):
        return self._content_type

    def set_body(self, body, content_type=None):
        self._body = body
        if content_type is not None:
            self._content_type = content_type

    def set_content_type(self, content_type):
        self._content_type = content_type

    def get_children(self):
        return list(self._children)

    def set_children(self, parts):
        self._children = list(parts)

    def add_part(self, content, content_type, charset=None):
        part = TextPart(content, content_type, charset or self._charset)
        self._children.append(part)
        return part

    def attach(self, part):
        part.inline = False
        self._children.append(part)
        return part

    def embed(self, part):
        part.inline = True
        if not part.content_id:
            part.content_id = make_msgid(domain=DNS_NAME)[1:-1]
        self._children.append(part)
        return f"cid:{part.content_id}"

    # ----- Headers -----

    def _address_field(self, name):
        for field in ADDRESS_FIELDS:
            if field.lower() == name.lower():
                return field
        return None

    def get_header(self, name):
        field = self._address_field(name)
        if field:
            return [self._format_address(e, n) for e, n in self._addresses[field].items()]
        return [value for key, value in self._headers if key.lower() == name.lower()]

    def set_header(self, name, value):
        field = self._address_field(name)
        if field:
            self.set_addresses(field, value)
            return
        self.remove_header(name)
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            self.add_header(name, item)

    def add_header(self, name, value):
        field = self._address_field(name)
        if field:
            self._addresses[field].update(normalize_addresses(value))
            return
        value = str(value)
        if "\n" in value or "\r" in value:
            raise HeaderInjectionError(
                f"Header values can't contain newlines (got {value!r} for header {name!r})"
            )
        self._headers.append((name, value))

    def remove_header(self, name):
        field = self._address_field(name)
        if field:
            self._addresses[field] = {}
            return
        self._headers = [(k, v) for k, v in self._headers if k.lower() != name.lower()]

    def get_addresses(self, field):
        return dict(self._addresses[self._address_field(field)])

    def set_addresses(self, field, value):
        self._addresses[self._address_field(field)] = normalize_addresses(value)

    # ----- Signing and plugins -----

    def attach_signer(self, signer):
        self._signers.append(signer)

    def register_plugin(self, plugin):
        if plugin not in self._plugins:
            self._plugins.append(plugin)

    def _log(self, entry):
        for plugin in self._plugins:
            plugin.add(entry)

    # ----- Output -----

    def _format_address(self, email, name=None):
        return formataddr((name or "", email), charset=self._charset)

    def _encode_header(self, value):
        try:
            value.encode("ascii")
        except UnicodeEncodeError:
            return Header(value, self._charset).encode()
        return value

    def _text_charset(self, part):
        charset = Charset(part.charset or self._charset)
        # Keep utf-8 text readable on the wire unless a line is too long.
        if charset.output_charset == "utf-8" and all(
            len(line.encode("utf-8")) <= MAX_LINE_LENGTH
            for line in (part.content or "").splitlines()
        ):
            charset.body_encoding = None
        return charset

    def _render_text(self, part):
        return WireText(part.content or "", part.subtype, self._text_charset(part))

    def _render_attachment(self, part):
        maintype, _, subtype = part.content_type.partition("/")
        mime = WireBase(maintype or "application", subtype or "octet-stream")
        mime.set_payload(part.data)
        encoders.encode_base64(mime)
        disposition = "inline" if part.inline else "attachment"
        if part.file_name:
            try:
                part.file_name.encode("ascii")
                filename = part.file_name
            except UnicodeEncodeError:
                filename = ("utf-8", "", part.file_name)
            mime.add_header("Content-Disposition", disposition, filename=filename)
        else:
            mime.add_header("Content-Disposition", disposition)
        if part.content_id:
            mime.add_header("Content-ID", f"<{part.content_id}>")
        return mime

    def text_parts(self):
        """Return the textual parts in rendering order, top-level body first."""
        parts = []
        if self._body:
            parts.append(TextPart(self._body, self._content_type or "text/plain", self._charset))
        parts.extend(p for p in self._children if not self.is_attachment(p))
        return parts

    def _build_payload(self):
        text_parts = self.text_parts()
        inline = [p for p in self._children if self.is_attachment(p) and p.inline]
        attachments = [p for p in self._children if self.is_attachment(p) and not p.inline]

        if not text_parts:
            mime = self._render_text(TextPart("", "text/plain", self._charset))
        elif len(text_parts) == 1:
            mime = self._render_text(text_parts[0])
        else:
            mime = WireMultipart("alternative")
            for part in text_parts:
                mime.attach(self._render_text(part))

        if inline:
            related = WireMultipart("related")
            related.attach(mime)
            for part in inline:
                related.attach(self._render_attachment(part))
            mime = related

        if attachments:
            mixed = WireMultipart("mixed")
            mixed.attach(mime)
            for part in attachments:
                mixed.attach(self._render_attachment(part))
            mime = mixed

        return mime

    def _apply_headers(self, mime, with_bcc=True):
        for field in ADDRESS_FIELDS:
            if field == "Bcc" and not with_bcc:
                continue
            addresses = self._addresses[field]
            if addresses:
                mime[field] = ", ".join(
                    self._format_address(email, name) for email, name in addresses.items()
                )

        for name, value in self._headers:
            mime[name] = self._encode_header(value)

        header_names = {key.lower() for key, _ in self._headers}
        if "date" not in header_names:
            mime["Date"] = formatdate(localtime=settings.EMAIL_USE_LOCALTIME)
        if "message-id" not in header_names:
            mime["Message-ID"] = make_msgid(domain=DNS_NAME)

    def message(self, with_bcc=True):
        """
        Build the MIME message. Bcc is rendered unless ``with_bcc`` is false,
        which is how the copy handed to a backend is built.
        """
        mime = self._build_payload()
        self._apply_headers(mime, with_bcc=with_bcc)
        for signer in self._signers:
            name, value = signer.sign(mime.as_bytes(linesep="\r\n"))
            mime[name] = value
        return mime

    def to_bytes(self):
        return self.message().as_bytes(linesep="\r\n")

    def envelope_sender(self):
        """Return the address used for the SMTP envelope sender."""
        return_path = self.get_header("Return-Path")
        if return_path:
            return return_path[0].strip("<>")
        senders = self._addresses["From"]
        if senders:
            return self._format_address(*next(iter(senders.items())))
        return None

    def recipients(self):
        return [
            self._format_address(email, name)
            for field in ("To", "Cc", "Bcc")
            for email, name in self._addresses[field].items()
        ]

    def send(self, connection=None):
        if not self.recipients():
            self._log("!! Message has no recipients, not sending")
            return False

        connection = connection or get_connection()
        self._log(f"++ Starting {type(connection).__name__}")

        email = PreparedEmail(
            self.message(with_bcc=False),
            from_email=self.envelope_sender(),
            to=[self._format_address(e, n) for e, n in self._addresses["To"].items()],
            cc=[self._format_address(e, n) for e, n in self._addresses["Cc"].items()],
            bcc=[self._format_address(e, n) for e, n in self._addresses["Bcc"].items()],
        )
        email.encoding = self._charset

        self._log(f">> Sending message to {len(self.recipients())} recipient(s)")
        try:
            sent = connection.send_messages([email])
        except Exception as exc:
            self._log(f"!! {type(exc).__name__}: {exc}")
            logger.error(f"Failed to send message via {type(connection).__name__}: {exc}")
            raise

        self._log(f"<< {type(connection).__name__} reported {sent or 0} message(s) sent")
        return bool(sent)
