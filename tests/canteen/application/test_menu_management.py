"""Application tests for stall registration, wallet settings and menu stock."""

import pytest
from canteen.cart.cart import ShoppingCart
from canteen.cart.management import AddToCart, CreateCart
from canteen.errors import InvalidWalletDetails, OwnershipError
from canteen.menu.management import AddMenuItem, RestockMenuItem, UpdateWalletSettings
from canteen.menu.menu_item import MenuItem
from canteen.menu.vendor import Vendor
from canteen.settings import CanteenSettings, get_settings
from protean import current_domain


class TestVendorRegistration:
    def test_wallet_number_is_normalized(self, make_vendor):
        vendor_id = make_vendor(wallet_handle="+63 917 123 4567")

        vendor = current_domain.repository_for(Vendor).get(vendor_id)
        assert vendor.accepts_wallet
        assert vendor.wallet_handle == "09171234567"

    def test_cash_only_stall(self, make_vendor):
        vendor = current_domain.repository_for(Vendor).get(make_vendor())
        assert not vendor.accepts_wallet

    def test_invalid_wallet_number_is_rejected(self, make_vendor):
        with pytest.raises(InvalidWalletDetails):
            make_vendor(wallet_handle="12345")


class TestWalletSettings:
    def test_owner_enables_and_disables_wallet(self, make_vendor):
        vendor_id = make_vendor(owner_id="owner-a")
        repo = current_domain.repository_for(Vendor)

        current_domain.process(
            UpdateWalletSettings(vendor_id=vendor_id, actor_id="owner-a", wallet_handle="09181112222"),
            asynchronous=False,
        )
        assert repo.get(vendor_id).accepts_wallet

        current_domain.process(UpdateWalletSettings(vendor_id=vendor_id, actor_id="owner-a"), asynchronous=False)
        assert not repo.get(vendor_id).accepts_wallet

    def test_only_the_owner_changes_settings(self, make_vendor):
        vendor_id = make_vendor(owner_id="owner-a")
        with pytest.raises(OwnershipError):
            current_domain.process(
                UpdateWalletSettings(vendor_id=vendor_id, actor_id="owner-b", wallet_handle="09181112222"),
                asynchronous=False,
            )


class TestMenuItems:
    def test_only_the_owner_adds_dishes(self, make_vendor):
        vendor_id = make_vendor(owner_id="owner-a")
        with pytest.raises(OwnershipError):
            current_domain.process(
                AddMenuItem(vendor_id=vendor_id, actor_id="owner-b", name="Pancit", price=60.0),
                asynchronous=False,
            )

    def test_restock(self, make_vendor, make_menu_item):
        vendor_id = make_vendor(owner_id="owner-a")
        item_id = make_menu_item(vendor_id, stock=3)

        current_domain.process(RestockMenuItem(menu_item_id=item_id, actor_id="owner-a", quantity=7), asynchronous=False)
        assert current_domain.repository_for(MenuItem).get(item_id).stock == 10

    def test_cart_copies_the_menu_price(self, make_vendor, make_menu_item):
        vendor_id = make_vendor(owner_id="owner-a")
        item_id = make_menu_item(vendor_id, price=92.5)

        cart_id = current_domain.process(CreateCart(customer_id="cust-001"), asynchronous=False)
        current_domain.process(AddToCart(cart_id=cart_id, menu_item_id=item_id, quantity=1), asynchronous=False)

        line = current_domain.repository_for(ShoppingCart).get(cart_id).lines[0]
        assert line.unit_price == 92.5
        assert str(line.vendor_id) == vendor_id


class TestSettings:
    def test_defaults_come_from_domain_config(self):
        settings = get_settings()

        assert settings.order_prefix == "UBF"
        assert settings.payment_window_minutes == 15
        assert settings.cancellation_window_minutes == 10
        assert settings.max_orders_per_hour == 10

    def test_missing_keys_fall_back_to_defaults(self):
        settings = CanteenSettings.from_mapping({"PAYMENT_WINDOW_MINUTES": "20"})

        assert settings.payment_window_minutes == 20
        assert settings.max_spend_per_day == 5000.0
