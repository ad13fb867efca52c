"""Application settings read from the ``[custom]`` table of ``domain.toml``."""

from protean.utils.globals import current_domain

DEFAULTS = {
    "ADMIN_EMAIL": "orders@storefront.local",
    "CHECKOUT_TTL_HOURS": 24,
    "CHECKOUT_ABANDON_MINUTES": 15,
    "STOCK_UPDATE_ATTEMPTS": 3,
    "PAYMENT_PROVIDER": "fake",
}


def setting(name: str):
    """Return a custom setting, falling back to the built-in default."""
    custom = current_domain.config.get("custom") or {}
    return custom.get(name, DEFAULTS[name])


def admin_email() -> str:
    return setting("ADMIN_EMAIL")


def checkout_ttl_hours() -> int:
    return int(setting("CHECKOUT_TTL_HOURS"))


def checkout_abandon_minutes() -> int:
    return int(setting("CHECKOUT_ABANDON_MINUTES"))


def stock_update_attempts() -> int:
    return max(int(setting("STOCK_UPDATE_ATTEMPTS")), 1)


def payment_provider() -> str:
    return setting("PAYMENT_PROVIDER")
