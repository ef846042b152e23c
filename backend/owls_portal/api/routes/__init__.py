from . import auth, discord, health, metrics

__all__ = [
    "auth",
    "discord",
    "health",
    "metrics",
]
