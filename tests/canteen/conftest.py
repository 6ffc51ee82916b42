import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def canteen_bed():
    from canteen.domain import canteen

    bed = DomainFixture(canteen)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(canteen_bed):
    from canteen.notification import reset_dispatcher

    with canteen_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()
    reset_dispatcher()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture
def make_vendor():
    from canteen.menu.management import RegisterVendor

    def _make(owner_id="owner-a", name="Ate Nena's Silog", wallet_handle=None):
        return current_domain.process(
            RegisterVendor(name=name, owner_id=owner_id, wallet_handle=wallet_handle),
            asynchronous=False,
        )

    return _make


@pytest.fixture
def make_menu_item():
    from canteen.menu.management import AddMenuItem

    def _make(vendor_id, owner_id="owner-a", name="Tapsilog", price=85.0, stock=20):
        return current_domain.process(
            AddMenuItem(vendor_id=vendor_id, actor_id=owner_id, name=name, price=price, stock=stock),
            asynchronous=False,
        )

    return _make


@pytest.fixture
def make_cart():
    from canteen.cart.management import AddToCart, CreateCart

    def _make(customer_id, items):
        """``items`` is a list of ``(menu_item_id, quantity)`` pairs."""
        cart_id = current_domain.process(CreateCart(customer_id=customer_id), asynchronous=False)
        for menu_item_id, quantity in items:
            current_domain.process(
                AddToCart(cart_id=cart_id, menu_item_id=menu_item_id, quantity=quantity),
                asynchronous=False,
            )
        return cart_id

    return _make


@pytest.fixture
def food_court(make_vendor, make_menu_item):
    """Two stalls: one takes wallet payments, the other is cash only."""
    wallet_stall = make_vendor(owner_id="owner-a", name="Ate Nena's Silog", wallet_handle="0917 123 4567")
    cash_stall = make_vendor(owner_id="owner-b", name="Kuya Ben's Drinks")
    return {
        "wallet_stall": wallet_stall,
        "cash_stall": cash_stall,
        "tapsilog": make_menu_item(wallet_stall, owner_id="owner-a", name="Tapsilog", price=100.0, stock=20),
        "longsilog": make_menu_item(wallet_stall, owner_id="owner-a", name="Longsilog", price=75.0, stock=20),
        "gulaman": make_menu_item(cash_stall, owner_id="owner-b", name="Sago't Gulaman", price=75.0, stock=5),
    }


@pytest.fixture
def dispatcher():
    from canteen.notification import get_dispatcher

    return get_dispatcher()
