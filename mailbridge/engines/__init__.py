from mailbridge.engines.base import MailMessage, normalize_addresses
from mailbridge.engines.django_mail import DjangoMailMessage
from mailbridge.exceptions import UnknownEngineError

ENGINES = {
    "django": DjangoMailMessage,
}


def register_engine(name: str, engine_class):
    """Register a ``MailMessage`` implementation under the given name."""
    if not (isinstance(engine_class, type) and issubclass(engine_class, MailMessage)):
        raise TypeError(f"{engine_class!r} is not a MailMessage subclass")
    ENGINES[name] = engine_class


def get_engine(name: str):
    """
    Return the engine message class registered under ``name``.

    Raises UnknownEngineError if the engine name is not recognized.
    """
    engine_class = ENGINES.get(name)
    if engine_class is None:
        raise UnknownEngineError(
            f"Unknown message engine: '{name}'. "
            f"Must be one of: {', '.join(ENGINES.keys())}"
        )
    return engine_class


__all__ = [
    "MailMessage",
    "DjangoMailMessage",
    "ENGINES",
    "get_engine",
    "register_engine",
    "normalize_addresses",
]
