"""Settlement engine: split, idempotence and constraint-race handling."""

from decimal import Decimal
import threading
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from coursepay.constants.payment_status import PaymentStatus, UserRole
from coursepay.core.exceptions import (
    PaymentNotFoundException,
    ReconciliationRequiredException,
    RepositoryException,
    ServiceException,
)
from coursepay.database import Base, enable_sqlite_savepoints
from coursepay.models import Course, Enrollment, Payment, Transaction, User
from coursepay.schemas.payment_schemas import ConfirmedPaymentEvent
from coursepay.services.settlement_service import SettlementOutcome, SettlementService

pytestmark = pytest.mark.integration


def _event(reference: str, source: str = "webhook") -> ConfirmedPaymentEvent:
    return ConfirmedPaymentEvent(
        reference=reference,
        raw_payload={"data": {"tx_ref": reference, "status": "success"}},
        source=source,
    )


def _count(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


def _balance(db, user_id: str) -> Decimal:
    return db.scalar(select(User.available_balance).where(User.id == user_id))


def test_settle_splits_enrolls_and_credits_instructor(db, pending_payment, instructor, student):
    result = SettlementService(db).settle(_event("ABC-1"))

    assert result.outcome is SettlementOutcome.SETTLED
    transaction = db.scalars(select(Transaction)).one()
    assert transaction.instructor_share == Decimal("800.00")
    assert transaction.platform_share == Decimal("200.00")
    assert transaction.amount_paid == Decimal("1000.00")
    assert transaction.instructor_id == instructor.id
    assert result.transaction_id == transaction.id

    enrollment = db.scalars(select(Enrollment)).one()
    assert enrollment.student_id == student.id
    assert enrollment.payment_id == pending_payment.id

    db.refresh(pending_payment)
    assert pending_payment.status == PaymentStatus.SUCCESS.value
    assert pending_payment.verified_at is not None
    assert pending_payment.processor_payload == {"data": {"tx_ref": "ABC-1", "status": "success"}}
    assert _balance(db, instructor.id) == Decimal("800.00")


def test_settle_twice_is_idempotent(db, pending_payment, instructor):
    service = SettlementService(db)

    first = service.settle(_event("ABC-1"))
    second = service.settle(_event("ABC-1", source="verification"))

    assert first.outcome is SettlementOutcome.SETTLED
    assert second.outcome is SettlementOutcome.ALREADY_SETTLED
    assert not second.settled_now
    assert _count(db, Transaction) == 1
    assert _count(db, Enrollment) == 1
    assert _balance(db, instructor.id) == Decimal("800.00")


def test_loser_of_unique_index_race_reports_already_settled(db, pending_payment, instructor, student):
    # A concurrent settler already inserted the split row but our read gates
    # did not see it: the insert must trip the unique index and back off.
    db.add(
        Transaction(
            payment_id=pending_payment.id,
            student_id=student.id,
            instructor_id=instructor.id,
            course_id=pending_payment.course_id,
            amount_paid=Decimal("1000.00"),
            instructor_share=Decimal("800.00"),
            platform_share=Decimal("200.00"),
        )
    )
    db.commit()

    service = SettlementService(db)
    with patch.object(service.transactions, "get_by_payment_id", return_value=None):
        result = service.settle(_event("ABC-1"))

    assert result.outcome is SettlementOutcome.ALREADY_SETTLED
    assert _count(db, Transaction) == 1
    assert _count(db, Enrollment) == 0
    assert _balance(db, instructor.id) == Decimal("0.00")


def test_loser_of_status_update_reports_already_settled(db, pending_payment, instructor):
    service = SettlementService(db)
    with patch.object(service.payments, "mark_succeeded_if_unsettled", return_value=False):
        result = service.settle(_event("ABC-1"))

    assert result.outcome is SettlementOutcome.ALREADY_SETTLED
    assert _count(db, Transaction) == 0
    assert _balance(db, instructor.id) == Decimal("0.00")


@pytest.fixture
def file_sessions(tmp_path):
    """Sessions on a file-backed database so each thread gets its own connection."""
    race_engine = create_engine(
        f"sqlite:///{tmp_path / 'settlement.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    enable_sqlite_savepoints(race_engine)
    Base.metadata.create_all(bind=race_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=race_engine, expire_on_commit=False)
    Base.metadata.drop_all(bind=race_engine)
    race_engine.dispose()


def test_concurrent_settlers_produce_one_settlement(file_sessions):
    with file_sessions() as seed:
        instructor = User(
            email="hana@example.com", full_name="Hana Tesfaye", role=UserRole.INSTRUCTOR.value
        )
        student = User(
            email="abebe@example.com", full_name="Abebe Kebede", role=UserRole.STUDENT.value
        )
        seed.add_all([instructor, student])
        seed.flush()
        course = Course(
            title="Amharic for Beginners", instructor_id=instructor.id, price=Decimal("1000.00")
        )
        seed.add(course)
        seed.flush()
        seed.add(
            Payment(
                student_id=student.id,
                course_id=course.id,
                amount=Decimal("1000.00"),
                reference="ABC-1",
                status=PaymentStatus.PENDING.value,
            )
        )
        seed.commit()
        instructor_id = instructor.id

    barrier = threading.Barrier(2)
    outcomes: list[SettlementOutcome] = []
    errors: list[BaseException] = []

    def settle() -> None:
        session = file_sessions()
        try:
            barrier.wait(timeout=5)
            outcomes.append(SettlementService(session).settle(_event("ABC-1")).outcome)
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=settle) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(outcome.value for outcome in outcomes) == ["already_settled", "settled"]
    with file_sessions() as check:
        assert _count(check, Transaction) == 1
        assert _count(check, Enrollment) == 1
        assert _balance(check, instructor_id) == Decimal("800.00")


def test_repository_failure_surfaces_as_service_error(db, pending_payment, instructor):
    service = SettlementService(db)
    with patch.object(
        service.payments,
        "mark_succeeded_if_unsettled",
        side_effect=RepositoryException("database is locked"),
    ):
        with pytest.raises(ServiceException):
            service.settle(_event("ABC-1"))

    db.refresh(pending_payment)
    assert pending_payment.status == PaymentStatus.PENDING.value
    assert _balance(db, instructor.id) == Decimal("0.00")


def test_unknown_reference_raises_not_found(db):
    with pytest.raises(PaymentNotFoundException) as exc_info:
        SettlementService(db).settle(_event("NOPE-1"))

    assert exc_info.value.reference == "NOPE-1"


def test_course_without_instructor_needs_reconciliation(
    db, student, course_factory, payment_factory, caplog
):
    orphan_course = course_factory(None, title="Orphaned")
    payment = payment_factory(student, orphan_course, reference="ORPHAN-1")

    with pytest.raises(ReconciliationRequiredException) as exc_info:
        SettlementService(db).settle(_event("ORPHAN-1"))

    assert exc_info.value.reason == "course has no instructor"
    db.refresh(payment)
    assert payment.status == PaymentStatus.PENDING.value
    assert _count(db, Transaction) == 0
    assert _count(db, Enrollment) == 0
    assert any(record.levelname == "CRITICAL" for record in caplog.records)


def test_existing_enrollment_is_reused(db, pending_payment, student, course):
    db.add(Enrollment(student_id=student.id, course_id=course.id))
    db.commit()

    result = SettlementService(db).settle(_event("ABC-1"))

    assert result.outcome is SettlementOutcome.SETTLED
    assert _count(db, Enrollment) == 1
    assert _count(db, Transaction) == 1


def test_custom_share_ratio(db, pending_payment):
    SettlementService(db, instructor_share_ratio=Decimal("0.70")).settle(_event("ABC-1"))

    transaction = db.scalars(select(Transaction)).one()
    assert transaction.instructor_share == Decimal("700.00")
    assert transaction.platform_share == Decimal("300.00")


def test_enrollment_email_sent_once(db, pending_payment, student, course):
    notifier = MagicMock()
    notifier.send_enrollment_confirmation.return_value = True
    service = SettlementService(db, notifier=notifier)

    service.settle(_event("ABC-1"))
    service.settle(_event("ABC-1"))

    notifier.send_enrollment_confirmation.assert_called_once_with(
        to_email=student.email,
        student_name=student.full_name,
        course_title=course.title,
        reference="ABC-1",
    )


def test_email_failure_does_not_undo_settlement(db, pending_payment):
    notifier = MagicMock()
    notifier.send_enrollment_confirmation.return_value = False

    result = SettlementService(db, notifier=notifier).settle(_event("ABC-1"))

    assert result.settled_now
    assert _count(db, Transaction) == 1


def test_settle_is_measured(db, pending_payment):
    service = SettlementService(db)
    service.settle(_event("ABC-1"))

    stats = service.get_metrics()["settle"]
    assert stats["count"] >= 1
    assert 0 < stats["success_rate"] <= 1
