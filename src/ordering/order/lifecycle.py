"""Order lifecycle: command and handler for store-side status updates."""

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    estimated_pickup_time = DateTime()
    actual_pickup_time = DateTime()


@ordering.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.advance(
            OrderStatus(command.status),
            estimated_pickup_time=command.estimated_pickup_time,
            actual_pickup_time=command.actual_pickup_time,
        )
        repo.add(order)
        return order.status
