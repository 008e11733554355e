from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class TextPart:
    """
    A textual alternative rendering of the message body, such as the
    plain-text or HTML version.
    """

    content: str
    content_type: str
    charset: Optional[str] = None

    @property
    def subtype(self) -> str:
        return self.content_type.partition("/")[2] or "plain"


@dataclass
class AttachmentPart:
    """
    A file carried by the message. Inline parts are embedded files that the
    HTML body references through their Content-ID.
    """

    content: Union[bytes, str]
    file_name: Optional[str] = None
    content_type: str = "application/octet-stream"
    inline: bool = False
    content_id: Optional[str] = None

    @property
    def data(self) -> bytes:
        """Return the content as bytes (text content is UTF-8 encoded)."""
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        return self.content
