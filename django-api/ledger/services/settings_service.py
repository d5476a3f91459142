"""Loads and updates the admin-controlled LedgerConfig."""

import json
import logging
from typing import Any, Mapping

from ledger.domain import LedgerConfig, PaymentMethodConfig, ProductType
from ledger.domain.config import (
    BOOKING_CUTOFF_KEY,
    DEFAULT_BOOKING_CUTOFF_MINUTES,
    DEFAULT_PAYMENT_METHODS,
    PAYMENT_CONFIG_KEY,
)
from ledger.stores.interfaces import LedgerStore

logger = logging.getLogger(__name__)


class SettingsService:
    """Builds config snapshots from the key-value settings store."""

    def __init__(
        self,
        store: LedgerStore,
        default_cutoff_minutes: int = DEFAULT_BOOKING_CUTOFF_MINUTES,
    ) -> None:
        self._store = store
        self._default_cutoff_minutes = default_cutoff_minutes

    def load(self) -> LedgerConfig:
        """Return the current config; bad stored values fall back to defaults."""
        raw = self._store.get_settings()
        version = max((v for _, v in raw.values()), default=0)
        return LedgerConfig(
            version=version,
            booking_cutoff_minutes=self._parse_cutoff(raw.get(BOOKING_CUTOFF_KEY)),
            payment_methods=self._parse_payment_methods(raw.get(PAYMENT_CONFIG_KEY)),
        )

    def set_booking_cutoff(self, minutes: int) -> LedgerConfig:
        if minutes < 0:
            raise ValueError("Booking cutoff cannot be negative")
        self._store.put_setting(BOOKING_CUTOFF_KEY, str(minutes))
        return self.load()

    def set_payment_methods(
        self, methods: Mapping[ProductType, PaymentMethodConfig]
    ) -> LedgerConfig:
        merged = {**DEFAULT_PAYMENT_METHODS, **self.load().payment_methods, **methods}
        payload = {product.value: cfg.to_dict() for product, cfg in merged.items()}
        self._store.put_setting(PAYMENT_CONFIG_KEY, json.dumps(payload, sort_keys=True))
        return self.load()

    def update(
        self,
        cutoff_minutes: int | None = None,
        methods: Mapping[ProductType, PaymentMethodConfig] | None = None,
    ) -> LedgerConfig:
        """Apply a cutoff and method toggles together; either both land or neither."""

        def _apply() -> LedgerConfig:
            config = self.load()
            if cutoff_minutes is not None:
                config = self.set_booking_cutoff(cutoff_minutes)
            if methods:
                config = self.set_payment_methods(methods)
            return config

        return self._store.run_in_transaction(_apply)

    def _parse_cutoff(self, entry: tuple[str, int] | None) -> int:
        if entry is None:
            return self._default_cutoff_minutes
        try:
            minutes = int(entry[0])
        except ValueError:
            logger.warning("Ignoring malformed %s=%r", BOOKING_CUTOFF_KEY, entry[0])
            return self._default_cutoff_minutes
        if minutes < 0:
            logger.warning("Ignoring negative %s=%d", BOOKING_CUTOFF_KEY, minutes)
            return self._default_cutoff_minutes
        return minutes

    def _parse_payment_methods(
        self, entry: tuple[str, int] | None
    ) -> Mapping[ProductType, PaymentMethodConfig]:
        if entry is None:
            return DEFAULT_PAYMENT_METHODS
        try:
            data: Any = json.loads(entry[0])
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed %s", PAYMENT_CONFIG_KEY)
            return DEFAULT_PAYMENT_METHODS
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object %s", PAYMENT_CONFIG_KEY)
            return DEFAULT_PAYMENT_METHODS

        methods = dict(DEFAULT_PAYMENT_METHODS)
        for key, value in data.items():
            try:
                product = ProductType(key)
            except ValueError:
                logger.warning("Ignoring unknown product type %r in %s", key, PAYMENT_CONFIG_KEY)
                continue
            if isinstance(value, dict):
                methods[product] = PaymentMethodConfig.from_dict(value)
        return methods
