import pytest

from libris.core.ledgers import FineLedger, LoanLedger
from libris.core.lifecycle import LoanLifecycleService
from libris.core.models import FineStatus
from libris.core.exceptions import (
    FineNotFoundError,
    InvalidState,
    LoanNotFoundError,
    ReferentialConflict,
    ValidationError,
)
from libris.schemas.fine import FineUpdate
from libris.schemas.loan import LoanUpdate


@pytest.fixture
def service(db_session):
    return LoanLifecycleService(db_session, rate=5)


@pytest.fixture
def loans(service, student, book, make_book, make_student, jan):
    """Three loans as of Jan 20: returned late, overdue and current."""
    other = make_book("Compilers", copies=1)
    third = make_book("Structure and Interpretation of Computer Programs", copies=1)
    classmate = make_student("1cd23cs002", name="Ravi Kumar")

    returned_late = service.issue(student.student_id, book.id, issue_date=jan(1), due_date=jan(5))
    service.return_book(returned_late.id, jan(6))
    overdue = service.issue(student.student_id, other.id, issue_date=jan(1), due_date=jan(10))
    current = service.issue(classmate.student_id, third.id, issue_date=jan(15), due_date=jan(29))
    return returned_late, overdue, current


def test_list_filters(db_session, loans, student):
    returned_late, overdue, current = loans
    ledger = LoanLedger(db_session)

    assert {l.id for l in ledger.list()} == {returned_late.id, overdue.id, current.id}
    assert {l.id for l in ledger.list_active()} == {overdue.id, current.id}
    assert [l.id for l in ledger.list_active_for("1cd23cs002")] == [current.id]
    assert [l.id for l in ledger.list(active=False)] == [returned_late.id]
    assert {l.id for l in ledger.list(student_id=student.student_id)} == {returned_late.id, overdue.id}
    # newest issue first
    assert ledger.list()[0].id == current.id


def test_overdue_counts(db_session, loans, jan):
    _, overdue, _ = loans
    ledger = LoanLedger(db_session)
    assert [l.id for l in ledger.list_overdue(jan(20))] == [overdue.id]
    assert ledger.count_overdue(jan(20)) == 1
    assert ledger.count_overdue(jan(20), student_id="1cd23cs002") == 0
    assert ledger.count_active() == 2


def test_loan_display_fields(db_session, loans):
    returned_late, _, _ = loans
    loan = LoanLedger(db_session).get(returned_late.id)
    assert loan.book_title == "Operating System Concepts"
    assert loan.student_name == "Asha Rao"
    assert loan.returned_late


def test_unfined_overdue_loans(db_session, loans, jan):
    returned_late, overdue, current = loans
    fines = FineLedger(db_session)

    # the late return was fined automatically, so only the overdue loan waits
    assert [l.id for l in fines.list_unfined_overdue_loans(jan(20))] == [overdue.id]

    fines.create(overdue.id, 50, date_calculated=jan(20))
    assert fines.list_unfined_overdue_loans(jan(20)) == []


def test_unfined_includes_late_returns_without_fine(db_session, loans, jan):
    returned_late, _, _ = loans
    fines = FineLedger(db_session)
    fines.delete(fines.get_for_loan(returned_late.id).id)
    assert returned_late.id in [l.id for l in fines.list_unfined_overdue_loans(jan(20))]


def test_create_fine_rules(db_session, loans, jan):
    returned_late, overdue, _ = loans
    fines = FineLedger(db_session)

    with pytest.raises(InvalidState):
        fines.create(returned_late.id, 10)
    with pytest.raises(ValidationError):
        fines.create(overdue.id, 0)
    with pytest.raises(LoanNotFoundError):
        fines.create(999, 10)

    fine = fines.create(overdue.id, 12.5, date_calculated=jan(20))
    assert fine.status == FineStatus.UNPAID
    assert float(fine.amount) == 12.5


def test_fine_listing_and_totals(db_session, loans, jan):
    returned_late, overdue, _ = loans
    fines = FineLedger(db_session)
    manual = fines.create(overdue.id, 40, date_calculated=jan(20))

    assert len(fines.list_by_status("Unpaid")) == 2
    assert float(fines.total_unpaid()) == 45
    fines.mark_paid(manual.id)
    assert [f.id for f in fines.list_by_status(FineStatus.PAID)] == [manual.id]
    assert float(fines.total_unpaid()) == 5
    assert float(fines.total_unpaid("1cd23cs002")) == 0
    assert len(fines.list(student_id="1cd23is145")) == 2


def test_fine_status_must_be_known(db_session):
    with pytest.raises(ValidationError):
        FineLedger(db_session).list(status="Forgiven")


def test_update_fine(db_session, loans):
    returned_late, _, _ = loans
    fines = FineLedger(db_session)
    fine = fines.get_for_loan(returned_late.id)
    updated = fines.update(fine.id, FineUpdate(amount=3, status=FineStatus.PAID))
    assert float(updated.amount) == 3
    assert updated.is_paid
    with pytest.raises(FineNotFoundError):
        fines.update(999, FineUpdate(amount=3))


def test_update_loan(db_session, loans, jan):
    _, overdue, _ = loans
    ledger = LoanLedger(db_session)
    updated = ledger.update(overdue.id, LoanUpdate(due_date=jan(25), renewal_count=1))
    assert updated.due_date == jan(25)
    assert updated.renewal_count == 1
    with pytest.raises(ValidationError):
        ledger.update(overdue.id, LoanUpdate(due_date=jan(1).replace(year=2023)))


def test_delete_loan_rules(db_session, loans):
    returned_late, overdue, _ = loans
    ledger = LoanLedger(db_session)

    with pytest.raises(InvalidState):
        ledger.delete(overdue.id)
    with pytest.raises(ReferentialConflict) as excinfo:
        ledger.delete(returned_late.id)
    assert excinfo.value.ids == [FineLedger(db_session).get_for_loan(returned_late.id).id]


def test_delete_returned_unfined_loan(db_session, service, student, book, jan):
    loan = service.issue(student.student_id, book.id, issue_date=jan(1), due_date=jan(15))
    service.return_book(loan.id, jan(2))
    ledger = LoanLedger(db_session)
    ledger.delete(loan.id)
    with pytest.raises(LoanNotFoundError):
        ledger.get(loan.id)
