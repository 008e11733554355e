import os

from django.conf import settings


DEFAULTS = {
    "MESSAGE_ENGINE": "django",
    "CHARSET": None,  # Falls back to settings.DEFAULT_CHARSET
    "MESSAGE_DEFAULTS": {
        "CHARSET": None,
        "FROM": None,
        "REPLY_TO": None,
        "RETURN_PATH": None,
        "PRIORITY": None,
    },
    "EMAIL_BACKEND": None,  # Falls back to settings.EMAIL_BACKEND
    # File transport
    "USE_FILE_TRANSPORT": False,
    "FILE_TRANSPORT_PATH": None,  # Defaults to <BASE_DIR>/runtime/mail at runtime
    # Engine diagnostics
    "ENABLE_ENGINE_LOGGING": False,
    # DKIM signing, e.g. {"KEY_PATH": ..., "DOMAIN": ..., "SELECTOR": ...}
    "DKIM": None,
}


def get_setting(name):
    """
    Retrieve a setting from the MAILBRIDGE dict in Django settings,
    falling back to DEFAULTS if not provided.
    """
    user_settings = getattr(settings, "MAILBRIDGE", {})
    value = user_settings.get(name, DEFAULTS.get(name))

    # Special case: CHARSET defaults to DEFAULT_CHARSET
    if name == "CHARSET" and value is None:
        value = settings.DEFAULT_CHARSET

    # Special case: FILE_TRANSPORT_PATH defaults to BASE_DIR/runtime/mail
    if name == "FILE_TRANSPORT_PATH" and value is None:
        base_dir = getattr(settings, "BASE_DIR", None)
        if base_dir:
            value = os.path.join(str(base_dir), "runtime", "mail")
        else:
            value = os.path.join(os.getcwd(), "runtime", "mail")

    # Deep-merge dicts (one level) for message defaults
    if name == "MESSAGE_DEFAULTS" and isinstance(value, dict):
        merged = {**DEFAULTS["MESSAGE_DEFAULTS"]}
        merged.update(value)
        return merged

    return value
