import logging
from unittest.mock import Mock, patch


from app.models import Booking, BookingStatus
from app.services.booking import BookingService
from app.services.effects import PostCommitEffects


class TestPostCommitEffects:
    def test_runs_effects_in_order(self):
        calls = []
        effects = PostCommitEffects()
        effects.add("first", calls.append, 1)
        effects.add("second", calls.append, 2)

        failures = effects.run()

        assert calls == [1, 2]
        assert failures == 0
        assert len(effects) == 0

    def test_failure_is_logged_and_does_not_stop_others(self, caplog):
        second = Mock()
        effects = PostCommitEffects()
        effects.add("broken", Mock(side_effect=RuntimeError("queue is down")))
        effects.add("second", second, "payload")

        with caplog.at_level(logging.ERROR, logger="app.services.effects"):
            failures = effects.run()

        assert failures == 1
        second.assert_called_once_with("payload")
        assert "broken" in caplog.text

    def test_effects_run_once(self):
        effect = Mock()
        effects = PostCommitEffects()
        effects.add("once", effect)

        effects.run()
        effects.run()

        effect.assert_called_once()


class TestCollaboratorFailures:
    """Падение уведомлений или аудита не откатывает состояние записи."""

    def test_booking_survives_notification_failure(self, db_session, test_member, test_class_instance):
        service = BookingService(db_session)

        with patch.object(
            service.notifications, "enqueue_for_member", side_effect=RuntimeError("notification service down")
        ):
            booking = service.book_class(test_member.id, test_class_instance.id)

        db_session.expire_all()
        stored = db_session.query(Booking).filter(Booking.id == booking.id).one()
        assert stored.status == BookingStatus.BOOKED

    def test_cancellation_survives_promotion_failure(self, db_session, test_member, test_class_instance):
        service = BookingService(db_session)
        booking = service.book_class(test_member.id, test_class_instance.id)

        with patch.object(
            service.promotion_engine, "promote_from_waitlist", side_effect=RuntimeError("lock timeout")
        ):
            result = service.cancel_booking(booking.id)

        assert result["status"] == BookingStatus.CANCELED
        db_session.refresh(booking)
        assert booking.status == BookingStatus.CANCELED

    def test_removal_survives_audit_failure(self, db_session, test_admin, test_member, test_class_instance):
        service = BookingService(db_session)
        booking = service.book_class(test_member.id, test_class_instance.id)

        with patch.object(service.audit_log, "record", side_effect=RuntimeError("audit store down")):
            removed = service.remove_member(booking.id, test_admin.id)

        assert removed.status == BookingStatus.CANCELED
