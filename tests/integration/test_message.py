import pickle
from unittest.mock import patch

import dkim
import pytest

from mailbridge.engines import DjangoMailMessage
from mailbridge.exceptions import AttachmentError, DkimKeyError, InvalidPriorityError
from mailbridge.message import Message
from mailbridge.parts import AttachmentPart, TextPart
from mailbridge.signers import DkimSigner
from tests.factories import MessageFactory

TEST_RECEIVER = "someuser@somedomain.com"

SIGNATURE = b"DKIM-Signature: v=1; a=rsa-sha256; d=somedomain.com; s=mail; b=abc\r\n"


def get_attachment(message):
    for part in message.engine_message.get_children():
        if isinstance(part, AttachmentPart):
            return part
    return None


class TestMessage:
    def test_engine_message(self):
        message = Message()
        assert isinstance(message.engine_message, DjangoMailMessage)
        assert message.engine_message is message.engine_message

    def test_engine_class_can_be_passed(self):
        class CustomMailMessage(DjangoMailMessage):
            pass

        message = Message(engine=CustomMailMessage)
        assert isinstance(message.engine_message, CustomMailMessage)

    def test_get_dkim_signer(self):
        signer = Message().get_dkim_signer("key", "somedomain.com", "mail")
        assert isinstance(signer, DkimSigner)

    def test_set_get(self):
        message = Message()

        message.charset = "utf-16"
        assert message.charset == "utf-16"

        message.subject = "Test Subject"
        assert message.subject == "Test Subject"

        message.from_email = "from@somedomain.com"
        assert "from@somedomain.com" in message.from_email

        message.reply_to = "reply-to@somedomain.com"
        assert "reply-to@somedomain.com" in message.reply_to

        message.to = TEST_RECEIVER
        assert TEST_RECEIVER in message.to

        message.cc = "ccuser@somedomain.com"
        assert "ccuser@somedomain.com" in message.cc

        message.bcc = "bccuser@somedomain.com"
        assert "bccuser@somedomain.com" in message.bcc

        message.return_path = "bounce@somedomain.com"
        assert message.return_path == "bounce@somedomain.com"

        message.priority = 2
        assert message.priority == 2

        message.read_receipt_to = "receipt@somedomain.com"
        assert message.read_receipt_to == ["receipt@somedomain.com"]

    def test_setup_headers(self):
        message = Message()
        message.charset = "utf-16"
        message.subject = "Test Subject"
        message.from_email = "from@somedomain.com"
        message.reply_to = "reply-to@somedomain.com"
        message.to = TEST_RECEIVER
        message.cc = "ccuser@somedomain.com"
        message.bcc = "bccuser@somedomain.com"
        message.priority = 1
        message.read_receipt_to = "receipt@somedomain.com"

        output = message.to_string()

        assert 'charset="utf-16"' in output
        assert "Subject: Test Subject" in output
        assert "From: from@somedomain.com" in output
        assert "Reply-To: reply-to@somedomain.com" in output
        assert f"To: {TEST_RECEIVER}" in output
        assert "Cc: ccuser@somedomain.com" in output
        assert "X-Priority: 1 (Highest)" in output
        assert "Disposition-Notification-To: receipt@somedomain.com" in output
        assert "Bcc: bccuser@somedomain.com" in output

    def test_invalid_priority(self):
        with pytest.raises(InvalidPriorityError):
            Message().priority = 7

    def test_custom_headers(self):
        message = Message().set_header("X-Mailer", "mailbridge").add_header("X-Tag", "a")
        message.add_header("X-Tag", "b")
        message.set_headers({"X-Campaign": "spring"})

        assert message.get_header("X-Tag") == ["a", "b"]
        output = message.to_string()
        assert "X-Mailer: mailbridge" in output
        assert "X-Campaign: spring" in output

    def test_setters_chain(self):
        message = Message()
        assert message.set_text_body("text").set_html_body("html") is message


class TestBodies:
    def test_alternative_body(self):
        message = MessageFactory(text_body=None, html_body="<b>HTML</b> body")
        message.set_text_body("plain text body")

        types = {
            part.content_type
            for part in message.engine_message.get_children()
            if isinstance(part, TextPart)
        }
        assert types == {"text/plain", "text/html"}

    def test_alternative_body_charset(self):
        message = Message()
        message.charset = "windows-1251"

        message.set_text_body("some text")
        message.set_html_body("some html")
        assert message.to_string().count("windows-1251") == 2

        message.set_text_body("some text override")
        assert message.to_string().count("windows-1251") == 2

    def test_text_body_override(self):
        message = MessageFactory(text_body="first")
        message.set_text_body("second")

        assert message.engine_message.body == "second"
        assert message.engine_message.get_children() == []


class TestAttachments:
    def test_attach_file(self, tmp_path):
        path = tmp_path / "report.pdf"
        path.write_bytes(b"%PDF-1.4")
        message = MessageFactory()

        message.attach(str(path))

        attachment = get_attachment(message)
        assert attachment is not None
        assert attachment.file_name == "report.pdf"
        assert attachment.content_type == "application/pdf"
        assert attachment.content == b"%PDF-1.4"

    def test_attach_file_with_options(self, tmp_path):
        path = tmp_path / "data"
        path.write_bytes(b"1,2,3")
        message = MessageFactory()

        message.attach(str(path), file_name="data.csv", content_type="text/csv")

        attachment = get_attachment(message)
        assert attachment.file_name == "data.csv"
        assert attachment.content_type == "text/csv"

    def test_attach_missing_file(self, tmp_path):
        with pytest.raises(AttachmentError) as exc_info:
            Message().attach(str(tmp_path / "missing.txt"))
        assert exc_info.value.path.endswith("missing.txt")

    def test_attach_content(self):
        message = MessageFactory()
        message.attach_content("Test attachment content", file_name="test.txt")

        attachment = get_attachment(message)
        assert attachment.file_name == "test.txt"
        assert attachment.content_type == "text/plain"
        assert "test.txt" in message.to_string()

    def test_attach_content_without_name(self):
        message = MessageFactory()
        message.attach_content(b"\x00\x01")
        assert get_attachment(message).content_type == "application/octet-stream"

    def test_embed_file(self, tmp_path):
        path = tmp_path / "embed_file.jpg"
        path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
        message = MessageFactory(text_body=None)

        cid = message.embed(str(path))
        message.set_html_body(f'Embed image: <img src="{cid}" alt="pic">')

        attachment = get_attachment(message)
        assert cid == f"cid:{attachment.content_id}"
        assert attachment.file_name == "embed_file.jpg"
        assert attachment.inline is True
        assert message.engine_message.body == f'Embed image: <img src="{cid}" alt="pic">'

    def test_embed_content(self):
        message = MessageFactory(text_body=None)

        cid = message.embed_content(
            b"\xff\xd8\xff\xe0fake-jpeg",
            file_name="embed_file.jpg",
            content_type="image/jpeg",
        )
        message.set_html_body(f'Embed image: <img src="{cid}" alt="pic">')

        attachment = get_attachment(message)
        assert attachment.file_name == "embed_file.jpg"
        assert attachment.content_type == "image/jpeg"
        mime = message.engine_message.message()
        assert mime.get_content_type() == "multipart/related"


class TestSigning:
    @patch("mailbridge.signers.dkim.sign", return_value=SIGNATURE)
    def test_set_dkim(self, mock_sign, private_key_file):
        message = MessageFactory()

        message.set_dkim(str(private_key_file), "somedomain.com", "mail")
        output = message.to_string()

        assert "DKIM-Signature: v=1; a=rsa-sha256; d=somedomain.com; s=mail; b=abc" in output
        assert mock_sign.call_args.args[3] == private_key_file.read_bytes()

    def test_signature_verifies(self, dkim_keypair):
        private_key, txt_record = dkim_keypair
        message = MessageFactory(html_body="<b>Hello</b>")
        message.add_signature({
            "key": private_key,
            "domain": "somedomain.com",
            "selector": "mail",
        })

        data = message.engine_message.to_bytes()

        assert b"DKIM-Signature: " in data
        assert dkim.verify(data, dnsfunc=lambda *args, **kwargs: txt_record)

    def test_set_dkim_from_key_file_verifies(self, private_key_file, dkim_keypair):
        message = MessageFactory()
        message.set_dkim(str(private_key_file), "somedomain.com", "mail")

        data = message.engine_message.to_bytes()

        assert dkim.verify(data, dnsfunc=lambda *args, **kwargs: dkim_keypair[1])

    def test_set_dkim_missing_key(self, tmp_path):
        with pytest.raises(DkimKeyError):
            Message().set_dkim(str(tmp_path / "missing.pem"), "somedomain.com", "mail")

    @patch("mailbridge.signers.dkim.sign", return_value=SIGNATURE)
    def test_add_signature_from_dict(self, mock_sign):
        message = MessageFactory()
        message.add_signature({
            "type": "dkim",
            "key": "key",
            "domain": "somedomain.com",
            "selector": "mail",
        })

        assert "DKIM-Signature" in message.to_string()
        assert mock_sign.call_count == 1

    @patch("mailbridge.signers.dkim.sign", return_value=SIGNATURE)
    def test_set_signature_accepts_several(self, mock_sign):
        message = MessageFactory()
        description = {"key": "key", "domain": "somedomain.com", "selector": "mail"}

        message.set_signature([description, lambda: description])
        message.to_string()

        assert mock_sign.call_count == 2


def test_message_is_picklable():
    message = MessageFactory(
        to=TEST_RECEIVER,
        subject="Pickle Test",
        text_body="plain text body",
    )

    restored = pickle.loads(pickle.dumps(message))

    assert restored.subject == "Pickle Test"
    assert restored.to == {TEST_RECEIVER: None}
    assert restored.engine_message.body == "plain text body"
