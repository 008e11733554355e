import base64

import django
from django.conf import settings
import pytest


def pytest_configure():
    settings.configure(
        DEBUG=True,
        DATABASES={
            "default": {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": ":memory:",
            }
        },
        INSTALLED_APPS=[
            "django.contrib.contenttypes",
            "mailbridge",
        ],
        DEFAULT_CHARSET="utf-8",
        DEFAULT_FROM_EMAIL="webmaster@example.com",
        EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
        MAILBRIDGE={
            "MESSAGE_ENGINE": "django",
            "MESSAGE_DEFAULTS": {},
            "USE_FILE_TRANSPORT": False,
            "ENABLE_ENGINE_LOGGING": False,
            "DKIM": None,
        },
        TEMPLATES=[
            {
                "BACKEND": "django.template.backends.django.DjangoTemplates",
                "DIRS": [],
                "APP_DIRS": True,
                "OPTIONS": {},
            },
        ],
        SECRET_KEY="test-secret-key-not-for-production",
    )
    django.setup()


@pytest.fixture
def mailer():
    from mailbridge.mailer import Mailer
    return Mailer()


@pytest.fixture
def message():
    from tests.factories import MessageFactory
    return MessageFactory()


@pytest.fixture
def engine_message():
    from mailbridge.engines import DjangoMailMessage
    return DjangoMailMessage(charset="utf-8")


@pytest.fixture(scope="session")
def dkim_keypair():
    """A real RSA key: PEM private key and the DNS TXT record publishing it."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_der = key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    txt_record = b"v=DKIM1; k=rsa; p=" + base64.b64encode(public_der)
    return private_pem, txt_record


@pytest.fixture
def private_key_file(tmp_path, dkim_keypair):
    path = tmp_path / "dkim.pem"
    path.write_bytes(dkim_keypair[0])
    return path


@pytest.fixture(autouse=True)
def _reset_default_mailer():
    from mailbridge.mailer import reset_mailer
    reset_mailer()
    yield
    reset_mailer()
