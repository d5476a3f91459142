"""Versioned business configuration passed into services at call time."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Self

from ledger.domain.models import PaymentMethod, ProductType

DEFAULT_BOOKING_CUTOFF_MINUTES = 180

BOOKING_CUTOFF_KEY = "booking_cutoff_minutes"
PAYMENT_CONFIG_KEY = "payment_config"


@dataclass(frozen=True)
class PaymentMethodConfig:
    """Which online payment methods a product type currently accepts."""

    bank_transfer: bool = True
    promptpay: bool = True
    credit_card: bool = False
    contact_admin: bool = False

    def accepts(self, method: PaymentMethod) -> bool:
        # Cash and "other" are taken at the front desk and are always allowed.
        if method is PaymentMethod.BANK_TRANSFER:
            return self.bank_transfer
        if method is PaymentMethod.PROMPTPAY:
            return self.promptpay
        if method is PaymentMethod.CARD:
            return self.credit_card
        return True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        defaults = cls()
        return cls(
            bank_transfer=bool(data.get("bank_transfer", defaults.bank_transfer)),
            promptpay=bool(data.get("promptpay", defaults.promptpay)),
            credit_card=bool(data.get("credit_card", defaults.credit_card)),
            contact_admin=bool(data.get("contact_admin", defaults.contact_admin)),
        )

    def to_dict(self) -> dict[str, bool]:
        return {
            "bank_transfer": self.bank_transfer,
            "promptpay": self.promptpay,
            "credit_card": self.credit_card,
            "contact_admin": self.contact_admin,
        }


DEFAULT_PAYMENT_METHODS: Mapping[ProductType, PaymentMethodConfig] = MappingProxyType(
    {
        ProductType.CLASS_BOOKING: PaymentMethodConfig(),
        ProductType.WORKSHOP: PaymentMethodConfig(),
        ProductType.TEACHER_TRAINING: PaymentMethodConfig(
            promptpay=False, contact_admin=True
        ),
        ProductType.PACKAGES: PaymentMethodConfig(),
    }
)


@dataclass(frozen=True)
class LedgerConfig:
    """Snapshot of admin-controlled settings.

    version is the highest stored setting version the snapshot was built
    from; 0 means nothing was stored and every value is a default.
    """

    version: int = 0
    booking_cutoff_minutes: int = DEFAULT_BOOKING_CUTOFF_MINUTES
    payment_methods: Mapping[ProductType, PaymentMethodConfig] = field(
        default_factory=lambda: DEFAULT_PAYMENT_METHODS
    )

    def __post_init__(self) -> None:
        if self.booking_cutoff_minutes < 0:
            raise ValueError("Booking cutoff cannot be negative")

    def methods_for(self, product: ProductType) -> PaymentMethodConfig:
        return self.payment_methods.get(product, DEFAULT_PAYMENT_METHODS[product])

    def payment_methods_to_dict(self) -> dict[str, dict[str, bool]]:
        return {product.value: self.methods_for(product).to_dict() for product in ProductType}
