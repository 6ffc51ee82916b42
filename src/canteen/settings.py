"""Business settings read from the ``[custom]`` table of ``domain.toml``."""

from dataclasses import dataclass

from protean.utils.globals import current_domain

_DEFAULTS = {
    "ORDER_PREFIX": "UBF",
    "PAYMENT_WINDOW_MINUTES": 15,
    "CANCELLATION_WINDOW_MINUTES": 10,
    "MAX_ORDERS_PER_HOUR": 10,
    "MAX_ORDERS_PER_DAY": 50,
    "MAX_SPEND_PER_DAY": 5000,
    "EXPIRY_SWEEP_INTERVAL_SECONDS": 60,
    "BOARD_REFRESH_SECONDS": 5,
    "LOYALTY_MAX_RETRIES": 3,
}


@dataclass(frozen=True)
class CanteenSettings:
    order_prefix: str
    payment_window_minutes: int
    cancellation_window_minutes: int
    max_orders_per_hour: int
    max_orders_per_day: int
    max_spend_per_day: float
    expiry_sweep_interval_seconds: int
    board_refresh_seconds: int
    loyalty_max_retries: int

    @classmethod
    def from_mapping(cls, mapping):
        values = {**_DEFAULTS, **(mapping or {})}
        return cls(
            order_prefix=str(values["ORDER_PREFIX"]),
            payment_window_minutes=int(values["PAYMENT_WINDOW_MINUTES"]),
            cancellation_window_minutes=int(values["CANCELLATION_WINDOW_MINUTES"]),
            max_orders_per_hour=int(values["MAX_ORDERS_PER_HOUR"]),
            max_orders_per_day=int(values["MAX_ORDERS_PER_DAY"]),
            max_spend_per_day=float(values["MAX_SPEND_PER_DAY"]),
            expiry_sweep_interval_seconds=int(values["EXPIRY_SWEEP_INTERVAL_SECONDS"]),
            board_refresh_seconds=int(values["BOARD_REFRESH_SECONDS"]),
            loyalty_max_retries=int(values["LOYALTY_MAX_RETRIES"]),
        )


def get_settings() -> CanteenSettings:
    """Settings of the active domain."""
    return CanteenSettings.from_mapping(current_domain.config.get("custom", {}))


def get_secret_key() -> bytes:
    secret = current_domain.config.get("secret_key") or ""
    return secret.encode("utf-8")
