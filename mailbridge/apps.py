import logging

from django.apps import AppConfig

logger = logging.getLogger("mailbridge")


class MailbridgeConfig(AppConfig):
    name = "mailbridge"
    verbose_name = "Mailbridge"

    def ready(self):
        from mailbridge.conf import get_setting
        from mailbridge.engines import get_engine

        # Fail early on a misconfigured engine name
        engine = get_setting("MESSAGE_ENGINE")
        if isinstance(engine, str):
            get_engine(engine)

        if get_setting("USE_FILE_TRANSPORT"):
            logger.debug(
                "Mailbridge file transport enabled, messages are saved to %s",
                get_setting("FILE_TRANSPORT_PATH"),
            )
