import structlog
from celery import shared_task

from orders.exceptions import TicketDeliveryError
from orders.models import Order
from orders.service.order_workflow import deliver_tickets

logger = structlog.get_logger(__name__)


@shared_task(name="orders.resend_order_tickets")
def resend_order_tickets(order_id: str) -> str:
    """Run the delivery phase again for an existing order.

    Returns the resulting delivery status. Failures are recorded on the order.
    """
    try:
        order = Order.objects.get(pk=order_id)
    except Order.DoesNotExist:
        logger.warning("resend_order_tickets_missing_order", order_id=order_id)
        return "missing"
    try:
        order = deliver_tickets(order)
    except TicketDeliveryError as e:
        logger.warning("resend_order_tickets_failed", order_id=order_id, stage=e.stage)
        return Order.DeliveryStatus.FAILED.value
    return order.delivery_status
