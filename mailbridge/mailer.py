import logging
import os

from django.core.mail import get_connection
from django.template.loader import render_to_string
from django.utils.html import strip_tags

from mailbridge.conf import get_setting
from mailbridge.logger import EngineLogger
from mailbridge.message import Message
from mailbridge.signals import message_before_send, message_sent

logger = logging.getLogger("mailbridge")

FILE_BACKEND = "django.core.mail.backends.filebased.EmailBackend"


class Mailer:
    """
    Composes messages and sends them through a Django email backend.

    Defaults come from the MAILBRIDGE setting and can be overridden per
    instance::

        mailer = Mailer(use_file_transport=True)
        message = mailer.compose("emails/welcome.html", {"user": user})
        message.to = user.email
        message.subject = "Welcome"
        mailer.send(message)
    """

    def __init__(
        self,
        backend=None,
        engine=None,
        message_defaults=None,
        use_file_transport=None,
        file_transport_path=None,
        enable_engine_logging=None,
        dkim=None,
        **backend_options,
    ):
        self.backend = backend or get_setting("EMAIL_BACKEND")
        self.engine = engine or get_setting("MESSAGE_ENGINE")
        self.message_defaults = (
            message_defaults
            if message_defaults is not None
            else get_setting("MESSAGE_DEFAULTS")
        )
        self.use_file_transport = (
            use_file_transport
            if use_file_transport is not None
            else get_setting("USE_FILE_TRANSPORT")
        )
        self.file_transport_path = file_transport_path or get_setting("FILE_TRANSPORT_PATH")
        self.enable_engine_logging = (
            enable_engine_logging
            if enable_engine_logging is not None
            else get_setting("ENABLE_ENGINE_LOGGING")
        )
        self.dkim = dkim if dkim is not None else get_setting("DKIM")
        self.backend_options = backend_options

    # ----- Composition -----

    def create_message(self):
        message = Message(engine=self.engine, mailer=self)
        defaults = self.message_defaults or {}

        if defaults.get("CHARSET"):
            message.charset = defaults["CHARSET"]
        if defaults.get("FROM"):
            message.from_email = defaults["FROM"]
        if defaults.get("REPLY_TO"):
            message.reply_to = defaults["REPLY_TO"]
        if defaults.get("RETURN_PATH"):
            message.return_path = defaults["RETURN_PATH"]
        if defaults.get("PRIORITY"):
            message.priority = defaults["PRIORITY"]

        if self.dkim:
            message.set_dkim(
                self.dkim["KEY_PATH"],
                self.dkim["DOMAIN"],
                self.dkim["SELECTOR"],
            )

        if self.enable_engine_logging:
            message.engine_message.register_plugin(EngineLogger())

        return message

    def compose(self, template=None, context=None):
        """
        Create a new message, optionally rendering its body from templates.

        Args:
            template: A template name rendered as the HTML body, or a dict
                with "html" and/or "text" template names.
            context: Template context.

        Returns:
            Message instance.
        """
        message = self.create_message()
        if template is None:
            return message

        context = context or {}
        if isinstance(template, dict):
            html_template = template.get("html")
            text_template = template.get("text")
        else:
            html_template = template
            text_template = None

        html = None
        if html_template:
            html = render_to_string(html_template, {**context, "message": message})
            message.set_html_body(html)

        if text_template:
            message.set_text_body(
                render_to_string(text_template, {**context, "message": message})
            )
        elif html is not None:
            message.set_text_body(strip_tags(html).strip())

        return message

    # ----- Sending -----

    def get_connection(self):
        """Return a Django email backend connection for sending."""
        if self.use_file_transport:
            path = self.file_transport_path
            os.makedirs(path, exist_ok=True)
            return get_connection(FILE_BACKEND, file_path=path)
        return get_connection(self.backend, **self.backend_options)

    def before_send(self, message):
        """Fire message_before_send; any receiver returning False vetoes sending."""
        responses = message_before_send.send(sender=type(self), message=message)
        return all(response is not False for _, response in responses)

    def after_send(self, message, is_successful):
        message_sent.send(sender=type(self), message=message, is_successful=is_successful)

    def send(self, message, connection=None):
        """
        Send a message. Returns True if the backend accepted it.

        Backend errors propagate after being logged.
        """
        if not self.before_send(message):
            logger.info(f"Sending of message '{message.subject}' was cancelled")
            return False

        if self.use_file_transport:
            logger.info(
                f"Saving message '{message.subject}' to {self.file_transport_path}"
            )
        else:
            logger.info(f"Sending message '{message.subject}'")

        is_successful = message.engine_message.send(connection or self.get_connection())
        self.after_send(message, is_successful)
        return is_successful

    def send_multiple(self, messages):
        """Send several messages over one connection. Returns the number sent."""
        connection = self.get_connection()
        sent = 0
        with connection:
            for message in messages:
                if self.send(message, connection=connection):
                    sent += 1
        return sent


_default_mailer = None


def get_mailer():
    """Return the mailer configured by the MAILBRIDGE setting."""
    global _default_mailer
    if _default_mailer is None:
        _default_mailer = Mailer()
    return _default_mailer


def reset_mailer():
    """Forget the default mailer, e.g. after settings change."""
    global _default_mailer
    _default_mailer = None
