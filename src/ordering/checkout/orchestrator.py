"""Checkout orchestrator: turns a cart into a paid order exactly once.

Flow of one attempt:
    1. Claim the idempotency key (replay a completed attempt verbatim)
    2. Read and validate the priced cart
    3. Reserve stock for every line               ↺ release reservation
    4. Generate a unique order number (bounded attempts)
    5. Persist the order as pending               ↺ fail / cancel order
    6. Charge payment with a timeout              ↺ refund charge
    7. Confirm the order, mark reservations used  ↺ release order holds
    8. Clear the cart (best effort)
    9. Complete the idempotency record

Each forward step records its compensation (↺) on a ``CheckoutSaga``. A
business rejection or an unexpected exception unwinds the recorded steps in
reverse and marks the idempotency record failed, so the client may retry
with the same key.

The orchestrator is built explicitly with every collaborator it uses and
owns the thread pool that runs gateway and catalogue calls under a
timeout. Call ``close()`` on shutdown.
"""

import secrets
import string
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from decimal import Decimal
from functools import partial
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from catalogue.lookup import CatalogLookup, placeholder_name
from inventory.exceptions import InsufficientStock, ReservationNotActive
from inventory.ledger import InventoryLedger
from inventory.reservations import ReservationManager
from ordering.cart.port import CartProvider, CartSnapshot
from ordering.checkout.exceptions import (
    ConflictInProgress,
    IdempotencyKeyReused,
    OrderNumberExhausted,
    RefundFailed,
)
from ordering.checkout.idempotency import ClaimOutcome, IdempotencyStore, fingerprint
from ordering.checkout.outcome import CheckoutRequest, ErrorKind, OrderOutcome
from ordering.checkout.saga import CheckoutSaga
from ordering.order.lifecycle import UpdateOrderStatus
from ordering.order.order import DeliveryType, Order, OrderStatus, PaymentStatus
from ordering.order.serializers import order_payload
from payments.gateway.port import ChargeResult, PaymentGateway
from shared.config import Settings
from shared.money import ZERO, money_str, to_money

logger = structlog.get_logger(__name__)

_BASE36 = string.digits + string.ascii_uppercase
_PAGE_SIZE = 100


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_order_number() -> str:
    """``ORD-<base36 millis>-<6 random base36 chars>``, uppercase."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"ORD-{_base36(int(time.time() * 1000))}-{suffix}"


class CheckoutOrchestrator:
    def __init__(
        self,
        domain,
        ledger: InventoryLedger,
        reservations: ReservationManager,
        idempotency: IdempotencyStore,
        gateway: PaymentGateway,
        cart: CartProvider,
        catalog: CatalogLookup,
        settings: Settings | None = None,
        order_number_factory=generate_order_number,
    ) -> None:
        self.domain = domain
        self.ledger = ledger
        self.reservations = reservations
        self.idempotency = idempotency
        self.gateway = gateway
        self.cart = cart
        self.catalog = catalog
        self.settings = settings or Settings()
        self.order_number_factory = order_number_factory
        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.payment_workers,
            thread_name_prefix="checkout-io",
        )

    def close(self) -> None:
        """Wait for in-flight gateway calls (and their late refunds) and stop the pool."""
        self._executor.shutdown(wait=True)

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def checkout(self, user_id: str, request: CheckoutRequest) -> OrderOutcome:
        with self.domain.domain_context():
            return self._checkout(str(user_id), request)

    def _checkout(self, user_id: str, request: CheckoutRequest) -> OrderOutcome:
        key = request.idempotency_key or str(uuid4())
        log = logger.bind(user_id=user_id, store_id=str(request.store_id), idempotency_key=key)

        try:
            claim = self.idempotency.claim(key, user_id, fingerprint(request.fingerprint_payload()))
        except ConflictInProgress as exc:
            log.info("Checkout already in progress for key")
            return OrderOutcome.failure(ErrorKind.IDEMPOTENCY_CONFLICT, str(exc), retryable=True)
        except IdempotencyKeyReused as exc:
            return OrderOutcome.failure(ErrorKind.IDEMPOTENCY_KEY_REUSED, str(exc))

        if claim.outcome == ClaimOutcome.REPLAY:
            return OrderOutcome.success(claim.response, replayed=True)

        saga = CheckoutSaga(key)
        try:
            outcome = self._run(saga, log, user_id, key, request)
        except Exception as exc:
            log.exception("Checkout failed unexpectedly", pending_compensations=saga.pending)
            saga.compensate(f"Checkout aborted: {exc.__class__.__name__}")
            self.idempotency.fail(key, user_id, {"error": exc.__class__.__name__, "message": str(exc)})
            raise

        if outcome.ok:
            self.idempotency.complete(key, user_id, outcome.order)
            log.info("Checkout completed", order_id=outcome.order["id"], order_number=outcome.order["order_number"])
            return outcome

        failed_steps = saga.compensate(outcome.error.message)
        if failed_steps:
            log.error("Checkout compensation incomplete", failed_steps=failed_steps)
        self.idempotency.fail(key, user_id, outcome.error.to_dict())
        log.info("Checkout rejected", error=outcome.error.kind.value, reason=outcome.error.message)
        return outcome

    def _run(self, saga: CheckoutSaga, log, user_id: str, key: str, request: CheckoutRequest) -> OrderOutcome:
        cart = self.cart.get_cart_with_totals(user_id, request.store_id)
        rejection = self._validate(cart, request)
        if rejection is not None:
            return rejection

        # Stock holds
        reservation_ids = []
        for line in cart.lines:
            try:
                reservation = self.reservations.reserve(
                    request.store_id,
                    line.product_id,
                    line.quantity,
                    user_id=user_id,
                    ttl_minutes=self.settings.reservation_ttl_minutes,
                )
            except InsufficientStock as exc:
                return self._insufficient_stock(exc.product_id, exc.available, line.quantity)
            reservation_ids.append(reservation.id)
            saga.record("release_reservation", partial(self._release_reservation, reservation.id))

        # Pending order
        order_number = self._unique_order_number()
        names = self._product_names([line.product_id for line in cart.lines])
        order = Order.create(
            order_number=order_number,
            user_id=user_id,
            store_id=str(request.store_id),
            items_data=[
                {
                    "product_id": line.product_id,
                    "product_name": names[line.product_id],
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "special_instructions": line.special_instructions,
                }
                for line in cart.lines
            ],
            totals={
                "subtotal": cart.subtotal,
                "tax": cart.tax,
                "delivery_fee": cart.delivery_fee,
                "discount": cart.discount,
                "total": cart.total,
            },
            payment_method=request.payment_method,
            delivery_type=request.delivery_type,
            delivery_address=request.delivery_address,
            special_instructions=request.special_instructions,
            idempotency_key=key,
        )
        repo = self.domain.repository_for(Order)
        repo.add(order)
        order_id = str(order.id)
        amount = order.total_amount
        saga.record("fail_order", partial(self._fail_order, order_id))
        log = log.bind(order_id=order_id, order_number=order_number)
        log.info("Order placed, charging payment", amount=str(amount), payment_method=request.payment_method)

        # Payment
        future = self._executor.submit(self.gateway.charge, amount, request.payment_method, order_id, user_id)
        try:
            charge = future.result(timeout=self.settings.payment_timeout_seconds)
        except FuturesTimeout:
            future.add_done_callback(partial(self._refund_late_charge, order_id, amount))
            log.warning("Payment timed out", timeout_seconds=self.settings.payment_timeout_seconds)
            return OrderOutcome.failure(
                ErrorKind.PAYMENT_DECLINED,
                "Payment timed out",
                retryable=True,
                reason="timeout",
                order_id=order_id,
            )

        if not charge.success:
            reason = charge.failure_reason or "Payment declined"
            log.info("Payment declined", reason=reason)
            return OrderOutcome.failure(ErrorKind.PAYMENT_DECLINED, reason, reason=reason, order_id=order_id)

        saga.record("refund_payment", partial(self._refund_payment, order_id, amount, charge.transaction_id))

        order = repo.get(order_id)
        order.confirm_payment(charge.transaction_id)
        repo.add(order)

        try:
            self.reservations.mark_used(reservation_ids, order_id)
        except ReservationNotActive as exc:
            log.warning("Reservation lapsed during payment", reservation_id=exc.reservation_id, status=exc.status)
            return OrderOutcome.failure(
                ErrorKind.RESERVATION_EXPIRED,
                "A stock reservation expired before the order could be completed",
                retryable=True,
                reservation_id=exc.reservation_id,
                order_id=order_id,
            )
        saga.discard("release_reservation")
        saga.record("release_order_holds", partial(self._release_order_holds, order_id))

        self._clear_cart(log, user_id, request.store_id)
        return OrderOutcome.success(order_payload(repo.get(order_id)))

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def _validate(self, cart: CartSnapshot, request: CheckoutRequest) -> OrderOutcome | None:
        if cart.is_empty:
            return OrderOutcome.failure(ErrorKind.CART_VALIDATION_FAILED, "Cart is empty", reasons=["Cart is empty"])

        reasons = []
        if request.delivery_type not in {t.value for t in DeliveryType}:
            reasons.append(f"Unknown delivery type {request.delivery_type!r}")
        elif request.delivery_type == DeliveryType.DELIVERY.value and not request.delivery_address:
            reasons.append("Delivery address is required for delivery orders")

        records = self.ledger.get_many(request.store_id, [line.product_id for line in cart.lines])
        shortfall = None
        for line in cart.lines:
            record = records.get(line.product_id)
            if record is None:
                reasons.append(f"Product {line.product_id} is not sold at this store")
            elif not record.is_available:
                reasons.append(f"Product {line.product_id} is currently unavailable")
            elif record.available_to_sell < line.quantity and shortfall is None:
                shortfall = (line.product_id, record.available_to_sell, line.quantity)

        if reasons:
            return OrderOutcome.failure(ErrorKind.CART_VALIDATION_FAILED, "; ".join(reasons), reasons=reasons)
        if shortfall is not None:
            return self._insufficient_stock(*shortfall)
        return None

    @staticmethod
    def _insufficient_stock(product_id: str, available: int, requested: int) -> OrderOutcome:
        return OrderOutcome.failure(
            ErrorKind.INSUFFICIENT_STOCK,
            f"Insufficient stock for product {product_id}",
            product_id=product_id,
            available=max(available, 0),
            requested=requested,
        )

    # -------------------------------------------------------------------
    # Forward-step helpers
    # -------------------------------------------------------------------
    def _unique_order_number(self) -> str:
        repo = self.domain.repository_for(Order)
        attempts = self.settings.order_number_attempts
        for _ in range(attempts):
            candidate = self.order_number_factory()
            if repo._dao.query.filter(order_number=candidate).all().total == 0:
                return candidate
            logger.warning("Order number collision", order_number=candidate)
        raise OrderNumberExhausted(attempts)

    def _product_names(self, product_ids: list[str]) -> dict[str, str]:
        futures = {pid: self._executor.submit(self.catalog.product_name, pid) for pid in product_ids}
        deadline = time.monotonic() + self.settings.catalog_timeout_seconds
        names = {}
        for product_id, future in futures.items():
            try:
                name = future.result(timeout=max(deadline - time.monotonic(), 0))
            except FuturesTimeout:
                logger.warning("Product lookup timed out", product_id=product_id)
                name = None
            except Exception as exc:
                logger.warning("Product lookup failed", product_id=product_id, error=str(exc))
                name = None
            names[product_id] = name or placeholder_name(product_id)
        return names

    def _clear_cart(self, log, user_id: str, store_id: str) -> None:
        try:
            self.cart.clear(user_id, store_id)
        except Exception as exc:
            log.warning("Failed to clear cart after checkout", error=str(exc))

    # -------------------------------------------------------------------
    # Compensations
    # -------------------------------------------------------------------
    def _release_reservation(self, reservation_id: str, reason: str) -> None:
        try:
            self.reservations.release(reservation_id)
        except ReservationNotActive as exc:
            logger.info("Reservation already closed", reservation_id=reservation_id, status=exc.status, reason=reason)

    def _release_order_holds(self, order_id: str, reason: str) -> None:
        released = self.reservations.release_for_order(order_id)
        logger.info("Order holds released", order_id=order_id, released=released, reason=reason)

    def _fail_order(self, order_id: str, reason: str) -> None:
        with self.domain.domain_context():
            repo = self.domain.repository_for(Order)
            order = repo.get(order_id)
            status = OrderStatus(order.status)
            if status == OrderStatus.PENDING:
                order.record_payment_failure(reason)
            elif status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
                return
            else:
                order.cancel(reason)
            repo.add(order)

    def _refund_payment(self, order_id: str, amount: Decimal, transaction_id: str, reason: str) -> None:
        result = self.gateway.refund(order_id, amount, reason, transaction_id=transaction_id)
        with self.domain.domain_context():
            repo = self.domain.repository_for(Order)
            order = repo.get(order_id)
            if result.success and order.is_paid:
                order.record_refund(result.refund_id)
            elif not result.success:
                order.record_refund_failure(result.failure_reason or "Refund failed")
            else:
                logger.info("Refunded charge for unconfirmed order", order_id=order_id, refund_id=result.refund_id)
                return
            repo.add(order)
        if not result.success:
            raise RefundFailed(order_id, result.failure_reason)

    def _refund_late_charge(self, order_id: str, amount: Decimal, future: Future) -> None:
        """Refund a charge that completed after checkout had already given up on it."""
        if future.cancelled() or future.exception() is not None:
            return
        charge: ChargeResult = future.result()
        if not charge.success:
            return
        try:
            result = self.gateway.refund(
                order_id,
                amount,
                "Charge completed after checkout timed out",
                transaction_id=charge.transaction_id,
            )
        except Exception:
            logger.exception("Late charge refund raised", order_id=order_id, transaction_id=charge.transaction_id)
            return
        if result.success:
            logger.warning(
                "Late charge refunded",
                order_id=order_id,
                transaction_id=charge.transaction_id,
                refund_id=result.refund_id,
            )
        else:
            logger.error(
                "Late charge could not be refunded",
                order_id=order_id,
                transaction_id=charge.transaction_id,
                reason=result.failure_reason,
            )

    # -------------------------------------------------------------------
    # Order lifecycle
    # -------------------------------------------------------------------
    def cancel(self, order_id: str, user_id: str, reason: str | None = None) -> OrderOutcome:
        """Cancel a customer's order, returning its stock and refunding a payment."""
        with self.domain.domain_context():
            repo = self.domain.repository_for(Order)
            try:
                order = repo.get(order_id)
            except ObjectNotFoundError:
                return OrderOutcome.failure(ErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found")
            if str(order.user_id) != str(user_id):
                return OrderOutcome.failure(ErrorKind.FORBIDDEN, "Order belongs to another user")

            try:
                order.cancel(reason)
            except ValidationError as exc:
                return OrderOutcome.failure(ErrorKind.ORDER_STATE_VIOLATION, _first_message(exc), status=order.status)
            repo.add(order)

            released = self.reservations.release_for_order(order_id)
            log = logger.bind(order_id=str(order_id), user_id=str(user_id))
            log.info("Order cancelled", released_reservations=released, reason=reason)

            order = repo.get(order_id)
            if order.is_paid:
                result = self.gateway.refund(
                    str(order.id),
                    order.total_amount,
                    reason or "Order cancelled",
                    transaction_id=order.payment_transaction_id,
                )
                if result.success:
                    order.record_refund(result.refund_id)
                    log.info("Cancelled order refunded", refund_id=result.refund_id)
                else:
                    order.record_refund_failure(result.failure_reason or "Refund failed")
                    log.error("Refund for cancelled order failed", reason=result.failure_reason)
                repo.add(order)

            return OrderOutcome.success(order_payload(repo.get(order_id)))

    def update_status(
        self,
        order_id: str,
        status: str,
        estimated_pickup_time=None,
        actual_pickup_time=None,
    ) -> OrderOutcome:
        with self.domain.domain_context():
            try:
                self.domain.process(
                    UpdateOrderStatus(
                        order_id=order_id,
                        status=status,
                        estimated_pickup_time=estimated_pickup_time,
                        actual_pickup_time=actual_pickup_time,
                    ),
                    asynchronous=False,
                )
            except ObjectNotFoundError:
                return OrderOutcome.failure(ErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found")
            except ValidationError as exc:
                return OrderOutcome.failure(ErrorKind.ORDER_STATE_VIOLATION, _first_message(exc), **exc.messages)
            order = self.domain.repository_for(Order).get(order_id)
            logger.info("Order status updated", order_id=str(order_id), status=order.status)
            return OrderOutcome.success(order_payload(order))

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id: str, user_id: str | None = None) -> OrderOutcome:
        with self.domain.domain_context():
            try:
                order = self.domain.repository_for(Order).get(order_id)
            except ObjectNotFoundError:
                return OrderOutcome.failure(ErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found")
            if user_id is not None and str(order.user_id) != str(user_id):
                return OrderOutcome.failure(ErrorKind.FORBIDDEN, "Order belongs to another user")
            return OrderOutcome.success(order_payload(order))

    def list_orders(self, user_id: str, status: str | None = None, limit: int = 20, offset: int = 0) -> dict:
        with self.domain.domain_context():
            criteria = {"user_id": str(user_id)}
            if status:
                criteria["status"] = status
            results = (
                self.domain.repository_for(Order)
                ._dao.query.filter(**criteria)
                .order_by("-created_at")
                .offset(offset)
                .limit(limit)
                .all()
            )
            return {
                "items": [order_payload(order) for order in results.items],
                "total": results.total,
                "limit": limit,
                "offset": offset,
            }

    def order_summary(self, store_id: str | None = None) -> dict:
        """Order counts per status and revenue from paid orders."""
        with self.domain.domain_context():
            by_status = {status.value: 0 for status in OrderStatus}
            revenue = ZERO
            paid_orders = 0
            total_orders = 0
            for order in self._iter_orders(store_id=str(store_id) if store_id else None):
                total_orders += 1
                by_status[order.status] += 1
                if order.payment_status == PaymentStatus.PAID.value:
                    paid_orders += 1
                    revenue += order.total_amount

            average = to_money(revenue / paid_orders) if paid_orders else ZERO
            return {
                "store_id": store_id,
                "total_orders": total_orders,
                "by_status": by_status,
                "paid_orders": paid_orders,
                "revenue": money_str(revenue),
                "average_order_value": money_str(average),
            }

    def _iter_orders(self, **criteria):
        criteria = {name: value for name, value in criteria.items() if value is not None}
        dao = self.domain.repository_for(Order)._dao
        offset = 0
        while True:
            query = dao.query.filter(**criteria) if criteria else dao.query
            page = query.order_by("created_at").offset(offset).limit(_PAGE_SIZE).all()
            yield from page.items
            offset += len(page.items)
            if not page.items or offset >= page.total:
                return


def _first_message(exc: ValidationError) -> str:
    for messages in exc.messages.values():
        if messages:
            return messages[0]
    return str(exc)
