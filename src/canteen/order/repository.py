"""Order queries used by checkout, the payment sweep and the review queue."""

from canteen.domain import canteen
from canteen.order.order import Order, OrderStatus


@canteen.repository(part_of=Order)
class OrderRepository:
    def for_parent(self, parent_order_id) -> list[Order]:
        """All vendor orders created by one checkout."""
        return self._dao.query.filter(parent_order_id=parent_order_id).all().items

    def for_customer(self, customer_id) -> list[Order]:
        return self._dao.query.filter(customer_id=customer_id).all().items

    def awaiting_payment(self) -> list[Order]:
        return self._dao.query.filter(status=OrderStatus.AWAITING_PAYMENT.value).all().items

    def flagged_for_review(self) -> list[Order]:
        return self._dao.query.filter(flagged_for_review=True).all().items

    def has_prior_order(self, customer_id, vendor_id, exclude_parent_order_id=None) -> bool:
        """Whether the customer has ordered from this vendor before (cancelled orders don't count)."""
        previous = self._dao.query.filter(customer_id=customer_id, vendor_id=vendor_id).all().items
        return any(
            order.status != OrderStatus.CANCELLED.value and order.parent_order_id != exclude_parent_order_id
            for order in previous
        )
