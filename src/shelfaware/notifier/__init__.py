from .expiry import ExpiryNotifier, classify, compose_message, delivery_id_for

__all__ = [
    "ExpiryNotifier",
    "classify",
    "compose_message",
    "delivery_id_for",
]
