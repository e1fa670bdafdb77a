#!/usr/bin/env python

"""
    Loan lifecycle for Libris.

    A copy of a book moves Available -> Issued -> Returned, and a late
    return files a Fine that moves Unpaid -> Paid. Issue and return touch
    both the loan ledger and the book's available copy count; both changes
    are flushed in one transaction and committed together, and the book's
    version column rejects a concurrent change to the same count.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from libris.configs import FINE_RATE, LOAN_PERIOD_DAYS, MAX_RENEWALS
from libris.core.catalog import CatalogRepository
from libris.core.directory import StudentDirectory
from libris.core.ledgers import FineLedger, LoanLedger
from libris.core.models import Fine, Loan
from libris.core.utils import as_datetime, today
from libris.core.exceptions import (
    BackendUnavailable,
    InsufficientCopies,
    InvalidState,
    ValidationError,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def overdue_days(due_date, return_date) -> int:
    """Whole days late, rounding any partial day up; never negative."""
    late = as_datetime(return_date) - as_datetime(due_date)
    return max(0, math.ceil(late.total_seconds() / SECONDS_PER_DAY))


def compute_fine(due_date, return_date, rate=FINE_RATE) -> Decimal:
    return overdue_days(due_date, return_date) * Decimal(str(rate))


@dataclass
class ReturnReceipt:
    loan: Loan
    fine: Optional[Fine] = None


class LoanLifecycleService:

    def __init__(self, db, rate=FINE_RATE, loan_period_days=LOAN_PERIOD_DAYS,
                 max_renewals=MAX_RENEWALS):
        self.db = db
        self.rate = rate
        self.loan_period = datetime.timedelta(days=loan_period_days)
        self.max_renewals = max_renewals
        self.catalog = CatalogRepository(db)
        self.loans = LoanLedger(db)
        self.fines = FineLedger(db)
        self.students = StudentDirectory(db)

    def _rollback_on_error(self, action, *args, **kwargs):
        try:
            return action(*args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store failure, rolled back: {e}")
            raise BackendUnavailable(f"The library store could not complete the request: {e}.")
        except Exception:
            self.db.rollback()
            raise

    def issue(self, student_id: str, book_id: int, librarian_id: Optional[int] = None,
              issue_date=None, due_date=None) -> Loan:
        """Lends one copy of `book_id` to `student_id`.

        The due date defaults to the issue date plus the loan period.

        Raises:
            StudentNotFoundError, BookNotFoundError: unknown ids.
            InsufficientCopies: no copy of the book is on the shelf.
            ValidationError: due date before issue date.
        """
        return self._rollback_on_error(
            self._issue, student_id, book_id, librarian_id, issue_date, due_date)

    def _issue(self, student_id, book_id, librarian_id, issue_date, due_date):
        student = self.students.get(student_id)
        issue_date = as_datetime(issue_date) if issue_date is not None else today()
        due_date = as_datetime(due_date) if due_date is not None else issue_date + self.loan_period
        if due_date < issue_date:
            raise ValidationError("Due date cannot be before the issue date.")

        book = self.catalog.get(book_id)
        if not book.is_borrowable:
            logger.warning(f"Refused to issue book {book_id}: no copies available")
            raise InsufficientCopies(f"'{book.title}' does not have available copies.")
        loan = self.loans.create(
            book_id=book.id,
            student_id=student.student_id,
            librarian_id=librarian_id,
            issue_date=issue_date,
            due_date=due_date,
            commit=False,
        )
        self.catalog.decrement_available(book.id, commit=False)
        self.loans.commit()
        self.db.refresh(loan)
        logger.info(f"Issued book {book.id} to {student.student_id} as loan {loan.id}, "
                    f"due {due_date:%Y-%m-%d}")
        return loan

    def return_book(self, loan_id: int, return_date=None) -> ReturnReceipt:
        """Records the return of an active loan, puts the copy back on the
        shelf and files an Unpaid fine when the return is late.

        Raises:
            LoanNotFoundError: unknown loan.
            InvalidState: the loan was already returned.
        """
        return self._rollback_on_error(self._return_book, loan_id, return_date)

    def _return_book(self, loan_id, return_date):
        return_date = as_datetime(return_date) if return_date is not None else today()
        loan = self.loans.record_return(loan_id, return_date, commit=False)
        self.catalog.increment_available(loan.book_id, commit=False)
        fine = None
        amount = compute_fine(loan.due_date, return_date, self.rate) if loan.due_date else 0
        if amount > 0:
            fine = self.fines.create(loan.id, amount, date_calculated=return_date, commit=False)
        self.loans.commit()
        self.db.refresh(loan)
        if fine is not None:
            self.db.refresh(fine)
            logger.info(f"Returned loan {loan.id} late; fined {fine.amount}")
        else:
            logger.info(f"Returned loan {loan.id}")
        return ReturnReceipt(loan=loan, fine=fine)

    def renew(self, loan_id: int, days: Optional[int] = None) -> Loan:
        """Extends the due date of an active loan and counts the renewal."""
        loan = self.loans.get(loan_id)
        if not loan.is_active:
            raise InvalidState(f"Loan #{loan_id} was already returned and cannot be renewed.")
        if self.max_renewals is not None and loan.renewal_count >= self.max_renewals:
            raise InvalidState(f"Loan #{loan_id} reached the limit of {self.max_renewals} renewals.")
        extension = datetime.timedelta(days=days) if days else self.loan_period
        loan.due_date = (loan.due_date or loan.issue_date) + extension
        loan.renewal_count += 1
        loan = self.loans.save(loan)
        logger.info(f"Renewed loan {loan.id} until {loan.due_date:%Y-%m-%d}")
        return loan

    def pay_fine(self, fine_id: int) -> Fine:
        """Marks a fine Paid. Paying an already paid fine changes nothing."""
        fine = self.fines.mark_paid(fine_id)
        logger.info(f"Fine {fine.id} is {fine.status.value}")
        return fine

    def active_loans(self, student_id: Optional[str] = None):
        if student_id:
            return self.loans.list_active_for(student_id)
        return self.loans.list_active()

    def overdue_loans(self, as_of=None):
        return self.loans.list_overdue(as_of)
