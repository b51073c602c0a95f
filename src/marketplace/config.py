"""Runtime settings read from the environment.

Domain-level configuration (providers, brokers, processing mode) lives in
``domain.toml`` and is handled by Protean. The values here are the knobs the
application layer needs: which payment gateway to talk to and with which
credentials, checkout redirect URLs, the shipping fee and the stock retry
budget.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    payment_gateway: str = "fake"
    stripe_api_key: str = ""
    stripe_webhook_secret: str = "whsec_test_secret"
    gateway_timeout_seconds: float = 10.0
    webhook_tolerance_seconds: int = 300
    currency: str = "usd"
    shipping_fee: float = 0.0
    stock_conflict_max_attempts: int = 3
    checkout_success_url: str = "http://localhost:3000/checkout/success?session_id={CHECKOUT_SESSION_ID}"
    checkout_cancel_url: str = "http://localhost:3000/checkout/cancel"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            payment_gateway=os.getenv("PAYMENT_GATEWAY", defaults.payment_gateway).lower(),
            stripe_api_key=os.getenv("STRIPE_API_KEY", defaults.stripe_api_key),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", defaults.stripe_webhook_secret),
            gateway_timeout_seconds=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", defaults.gateway_timeout_seconds)),
            webhook_tolerance_seconds=int(os.getenv("WEBHOOK_TOLERANCE_SECONDS", defaults.webhook_tolerance_seconds)),
            currency=os.getenv("MARKETPLACE_CURRENCY", defaults.currency).lower(),
            shipping_fee=float(os.getenv("MARKETPLACE_SHIPPING_FEE", defaults.shipping_fee)),
            stock_conflict_max_attempts=max(
                1, int(os.getenv("STOCK_CONFLICT_MAX_ATTEMPTS", defaults.stock_conflict_max_attempts))
            ),
            checkout_success_url=os.getenv("CHECKOUT_SUCCESS_URL", defaults.checkout_success_url),
            checkout_cancel_url=os.getenv("CHECKOUT_CANCEL_URL", defaults.checkout_cancel_url),
        )


_current_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings, reading the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = Settings.from_env()
    return _current_settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    global _current_settings
    _current_settings = None
