"""Vendor workflow: accept an order, then mark it ready for pickup."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.order.order import Order
from canteen.order.ownership import assert_vendor_owns


@canteen.command(part_of="Order")
class AcceptOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)


@canteen.command(part_of="Order")
class MarkOrderReady:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)


@canteen.command_handler(part_of=Order)
class PreparationHandler:
    @handle(AcceptOrder)
    def accept_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        assert_vendor_owns(order, command.actor_id)
        order.accept()
        repo.add(order)

    @handle(MarkOrderReady)
    def mark_ready(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        assert_vendor_owns(order, command.actor_id)
        order.mark_ready()
        repo.add(order)
