from dataclasses import dataclass
from typing import Optional, Sequence, Union

import dkim

from mailbridge.exceptions import InvalidSignerError

DEFAULT_SIGNED_HEADERS = (
    "From",
    "To",
    "Cc",
    "Subject",
    "Date",
    "Message-ID",
    "Reply-To",
    "MIME-Version",
    "Content-Type",
)


@dataclass
class DkimConfig:
    """
    Declarative DKIM signer description. Turned into a ``DkimSigner`` by
    ``resolve_signer`` when attached to a message.
    """

    private_key: Union[bytes, str]
    domain: str
    selector: str
    headers: Optional[Sequence[str]] = None

    def build(self):
        return DkimSigner(
            self.private_key, self.domain, self.selector, headers=self.headers
        )


class DkimSigner:
    """
    Signs serialized messages with DKIM through dkimpy.

    ``sign`` receives the CRLF wire bytes of the message and returns the
    ``(name, value)`` of the DKIM-Signature header to add.
    """

    header_name = "DKIM-Signature"

    def __init__(self, private_key, domain, selector, headers=None):
        if isinstance(private_key, str):
            private_key = private_key.encode("ascii")
        self.private_key = private_key
        self.domain = domain
        self.selector = selector
        self.headers = tuple(headers or DEFAULT_SIGNED_HEADERS)

    def __repr__(self):
        return f"<DkimSigner domain={self.domain!r} selector={self.selector!r}>"

    def sign(self, data: bytes):
        signature = dkim.sign(
            data,
            _to_bytes(self.selector),
            _to_bytes(self.domain),
            self.private_key,
            canonicalize=(b"relaxed", b"relaxed"),
            include_headers=[h.encode("ascii") for h in self.headers],
        )
        name, _, value = signature.decode("ascii").partition(":")
        return name.strip(), " ".join(value.split())


def _to_bytes(value):
    if isinstance(value, str):
        return value.encode("ascii")
    return value


def resolve_signer(signer):
    """
    Resolve a signer description into an object with a ``sign`` method.

    Accepts a concrete signer, a ``DkimConfig``, a dict such as
    ``{"type": "dkim", "key": ..., "domain": ..., "selector": ...}``, or a
    callable returning any of these.

    Raises:
        InvalidSignerError: If the description is not supported.
    """
    if isinstance(signer, DkimConfig):
        return signer.build()

    if isinstance(signer, dict):
        signer_type = signer.get("type", "dkim")
        if signer_type != "dkim":
            raise InvalidSignerError(
                f"Unsupported signer type: '{signer_type}'. Must be one of: dkim"
            )
        try:
            config = DkimConfig(
                private_key=signer["key"],
                domain=signer["domain"],
                selector=signer["selector"],
                headers=signer.get("headers"),
            )
        except KeyError as exc:
            raise InvalidSignerError(
                f"DKIM signer description is missing {exc.args[0]!r}"
            ) from exc
        return config.build()

    if callable(getattr(signer, "sign", None)):
        return signer

    if callable(signer):
        return resolve_signer(signer())

    raise InvalidSignerError(
        f"Signer must be a signer object, a DkimConfig, a dict or a callable, "
        f"got {type(signer).__name__}"
    )
