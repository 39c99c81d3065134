import typing as t
from uuid import UUID

from ninja_extra import api_controller, route

from common.auth_base import BaseJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse, ResponseMessage
from common.throttling import ScanThrottle, WriteThrottle
from orders import schema
from orders.models import Order
from orders.service import checkout, order_service, redemption
from orders.service.assembler import BuyerDetails
from orders.service.checkout import CartItem
from orders.service.order_workflow import OrderWorkflow
from orders.service.payment_gateway import get_payment_gateway
from orders.tasks import resend_order_tickets

ERRORS: dict[int, t.Any] = {status: ErrorResponse for status in (400, 403, 404, 502, 504)}


@api_controller("/orders", auth=BaseJWTAuth(), tags=["Orders"])
class OrderController(UserAwareController):
    @route.post(
        "/create-order",
        url_name="create_order",
        response={201: schema.OrderSchema, 200: schema.OrderSchema, **ERRORS, 502: schema.OrderDeliveryFailedSchema},
        throttle=WriteThrottle(),
    )
    def create_order(self, payload: schema.CreateOrderSchema) -> tuple[int, Order]:
        """Turn a succeeded payment into an order and email its tickets.

        Replaying the same payment returns the existing order with status 200.
        A 502 with `order_id` means the order exists but the tickets could not
        be delivered; they can be re-sent with `/orders/{order_id}/resend-tickets`.
        """
        buyer = BuyerDetails(first_name=payload.first_name, last_name=payload.last_name, email=payload.email)
        result = OrderWorkflow(get_payment_gateway()).place_order(self.user(), payload.payment_intent_id, buyer)
        order = order_service.get_order(result.order.id)
        return (201 if result.created else 200), order

    @route.post(
        "/payment-intent",
        url_name="create_payment_intent",
        response={200: schema.PaymentIntentSchema, **ERRORS},
        throttle=WriteThrottle(),
    )
    def create_payment_intent(self, payload: schema.PaymentIntentRequestSchema) -> schema.PaymentIntentSchema:
        """Price a cart and open a payment intent for it. Inventory is checked but not reserved."""
        items = [CartItem(**item.model_dump()) for item in payload.items]
        intent = checkout.create_payment_intent(self.user(), items, get_payment_gateway())
        return schema.PaymentIntentSchema(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            amount=intent.amount,
            currency=intent.currency,
        )

    @route.post(
        "/update-ticket-used",
        url_name="update_ticket_used",
        response={200: schema.RedeemedTicketSchema, **ERRORS},
        throttle=ScanThrottle(),
    )
    def update_ticket_used(self, payload: schema.RedeemTicketSchema) -> schema.RedeemedTicketSchema:
        """Mark one ticket unit as used. Only staff and the event organizer may do this."""
        if payload.qr_payload:
            line = redemption.redeem_qr_payload(self.user(), payload.qr_payload)
        else:
            line = redemption.redeem_ticket(
                self.user(),
                payload.order_id,  # type: ignore[arg-type]
                payload.event_id,  # type: ignore[arg-type]
                payload.ticket_type_id,  # type: ignore[arg-type]
                payload.index,  # type: ignore[arg-type]
            )
        return schema.RedeemedTicketSchema(
            order_id=line.group.order_id,
            event_id=line.group.event_id,
            ticket_type_id=line.ticket_type_id,
            quantity=line.quantity,
            used_markers=line.used_markers,
        )

    @route.get("/", url_name="list_orders", response=list[schema.OrderSchema])
    def list_orders(self) -> t.Any:
        """The caller's orders, newest first."""
        return order_service.list_orders(self.user())

    @route.get("/order-by-qr/{qr_code_id}", url_name="get_order_by_qr", response={200: schema.OrderSchema, **ERRORS})
    def get_order_by_qr(self, qr_code_id: str) -> Order:
        """The order a scanned QR code belongs to. Also visible to the organizers of its events."""
        return order_service.get_order_by_qr(qr_code_id, self.user())

    @route.get("/{order_id}", url_name="get_order", response={200: schema.OrderDetailSchema, **ERRORS})
    def get_order(self, order_id: UUID) -> order_service.OrderDetails:
        """An order with its payment method, payment date and applied discounts. Has no side effects."""
        return order_service.get_order_details(order_id, self.user(), get_payment_gateway())

    @route.post(
        "/{order_id}/resend-tickets",
        url_name="resend_tickets",
        response={202: ResponseMessage, **ERRORS},
        throttle=WriteThrottle(),
    )
    def resend_tickets(self, order_id: UUID) -> tuple[int, ResponseMessage]:
        order = order_service.get_order(order_id)
        order_service.ensure_can_view(order, self.user())
        resend_order_tickets.delay(str(order.id))
        return 202, ResponseMessage(message="Tickets will be sent shortly.")
