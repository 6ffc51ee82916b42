"""Vendor stall aggregate.

The core only needs three facts about a stall: who owns it (for ownership
checks on vendor actions), whether it accepts wallet payments, and the
wallet number customers transfer to.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Identifier, String

from canteen.domain import canteen
from canteen.errors import InvalidWalletDetails, OwnershipError
from canteen.menu.events import VendorRegistered, WalletSettingsUpdated
from canteen.payment.wallet import normalize_wallet_number


@canteen.aggregate
class Vendor:
    name = String(required=True, max_length=120)
    owner_id = Identifier(required=True)
    accepts_wallet = Boolean(default=False)
    wallet_handle = String(max_length=20)
    wallet_name = String(max_length=120)
    created_at = DateTime()

    @classmethod
    def register(cls, name, owner_id, wallet_handle=None, wallet_name=None, registered_at=None):
        vendor = cls(name=name, owner_id=owner_id, created_at=registered_at or datetime.now(UTC))
        if wallet_handle:
            vendor.accepts_wallet = True
            vendor.wallet_handle = normalize_wallet_number(wallet_handle)
            vendor.wallet_name = wallet_name

        vendor.raise_(
            VendorRegistered(
                vendor_id=str(vendor.id),
                name=name,
                owner_id=str(owner_id),
                accepts_wallet=vendor.accepts_wallet,
            )
        )
        return vendor

    def is_owned_by(self, actor_id):
        return actor_id is not None and str(self.owner_id) == str(actor_id)

    def assert_owned_by(self, actor_id):
        if not self.is_owned_by(actor_id):
            raise OwnershipError("Only the stall owner can perform this action", vendor_id=str(self.id), actor_id=actor_id)

    def enable_wallet(self, wallet_handle, wallet_name=None):
        if not wallet_handle:
            raise InvalidWalletDetails("A wallet number is required to accept wallet payments")

        self.wallet_handle = normalize_wallet_number(wallet_handle)
        self.wallet_name = wallet_name
        self.accepts_wallet = True
        self.raise_(
            WalletSettingsUpdated(
                vendor_id=str(self.id),
                accepts_wallet=True,
                wallet_handle=self.wallet_handle,
            )
        )

    def disable_wallet(self):
        self.accepts_wallet = False
        self.raise_(WalletSettingsUpdated(vendor_id=str(self.id), accepts_wallet=False))
