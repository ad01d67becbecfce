"""Application tests for the reservation expiry sweep.

Covers:
- Reservations past their TTL are expired and their holds returned
- Fresh reservations are left alone
- Reservations already used by an order are never swept
- Batch size bounds a single sweep
"""

from datetime import UTC, datetime, timedelta

from inventory.reservations import ReservationStatus


def _later(minutes):
    return datetime.now(UTC) + timedelta(minutes=minutes)


class TestExpireStale:
    def test_expires_reservation_past_ttl(self, reservations, ledger, stocked):
        store_id, product_id = stocked
        reservation = reservations.reserve(store_id, product_id, 4, ttl_minutes=1)

        expired = reservations.expire_stale(now=_later(2))

        assert expired == 1
        assert reservations.get(reservation.id).status == ReservationStatus.EXPIRED.value
        assert ledger.get(store_id, product_id).reserved_quantity == 0

    def test_no_stale_reservations_is_noop(self, reservations):
        assert reservations.expire_stale() == 0

    def test_fresh_reservations_are_not_expired(self, reservations, ledger, stocked):
        store_id, product_id = stocked
        reservation = reservations.reserve(store_id, product_id, 4, ttl_minutes=15)

        assert reservations.expire_stale(now=_later(5)) == 0
        assert reservations.get(reservation.id).status == ReservationStatus.RESERVED.value
        assert ledger.get(store_id, product_id).reserved_quantity == 4

    def test_used_reservation_is_never_swept(self, reservations, ledger, stocked):
        store_id, product_id = stocked
        reservation = reservations.reserve(store_id, product_id, 4, ttl_minutes=1)
        reservations.mark_used([reservation.id], "order-1")

        assert reservations.expire_stale(now=_later(30)) == 0
        assert reservations.get(reservation.id).status == ReservationStatus.USED.value
        assert ledger.get(store_id, product_id).reserved_quantity == 4

    def test_expired_reservation_cannot_be_used(self, reservations, stocked):
        store_id, product_id = stocked
        reservation = reservations.reserve(store_id, product_id, 1, ttl_minutes=1)
        reservations.expire_stale(now=_later(2))

        stored = reservations.get(reservation.id)
        assert stored.is_active is False

    def test_released_stock_is_available_to_others(self, reservations, stocked):
        store_id, product_id = stocked
        reservations.reserve(store_id, product_id, 10, ttl_minutes=1)
        reservations.expire_stale(now=_later(2))

        again = reservations.reserve(store_id, product_id, 10)

        assert again.status == ReservationStatus.RESERVED.value

    def test_batch_size_limits_one_sweep(self, reservations, ledger, stocked):
        store_id, product_id = stocked
        for _ in range(3):
            reservations.reserve(store_id, product_id, 1, ttl_minutes=1)

        assert reservations.expire_stale(now=_later(2), batch_size=2) == 2
        assert ledger.get(store_id, product_id).reserved_quantity == 1
        assert reservations.expire_stale(now=_later(2), batch_size=2) == 1
        assert ledger.get(store_id, product_id).reserved_quantity == 0
