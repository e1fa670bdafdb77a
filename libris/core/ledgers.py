#!/usr/bin/env python

"""
    Lending ledgers for Libris: loan (issue) records and the fines
    filed against late returns.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from decimal import Decimal
from typing import Optional
from sqlalchemy import and_, or_, func
from sqlalchemy.orm import joinedload
from libris.core.repository import Repository
from libris.core.models import Fine, FineStatus, Loan
from libris.core.identifiers import normalize_student_id
from libris.core.utils import as_datetime, today
from libris.core.exceptions import (
    FineNotFoundError,
    InvalidState,
    LoanNotFoundError,
    ReferentialConflict,
    ValidationError,
)

logger = logging.getLogger(__name__)


def fine_status(value) -> FineStatus:
    try:
        return FineStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown fine status '{value}'; expected Unpaid or Paid.")


class LoanLedger(Repository):

    model = Loan
    not_found = LoanNotFoundError

    def get(self, loan_id: int) -> Loan:
        return self._get(loan_id)

    def _query(self):
        return self.db.query(Loan).options(
            joinedload(Loan.book), joinedload(Loan.student))

    def list(self, student_id: Optional[str] = None, book_id: Optional[int] = None,
             active: Optional[bool] = None, offset=None, limit=None):
        q = self._query()
        if student_id:
            q = q.filter(Loan.student_id == normalize_student_id(student_id))
        if book_id is not None:
            q = q.filter(Loan.book_id == book_id)
        if active is True:
            q = q.filter(Loan.return_date.is_(None))
        elif active is False:
            q = q.filter(Loan.return_date.isnot(None))
        q = q.order_by(Loan.issue_date.desc(), Loan.id.desc())
        return self._all(q.offset(offset).limit(limit))

    def list_active(self):
        return self.list(active=True)

    def list_active_for(self, student_id: str):
        return self.list(student_id=student_id, active=True)

    def _overdue(self, as_of=None):
        as_of = as_datetime(as_of) if as_of is not None else today()
        return self._query().filter(
            Loan.return_date.is_(None),
            Loan.due_date.isnot(None),
            Loan.due_date < as_of,
        )

    def list_overdue(self, as_of=None):
        """Active loans whose due date is before `as_of` (default today)."""
        return self._all(self._overdue(as_of).order_by(Loan.due_date.asc(), Loan.id.asc()))

    def lent_book_ids(self):
        """Book id of every loan ever made, in lending order."""
        with self.reading('list'):
            return [row[0] for row in self.db.query(Loan.book_id).order_by(Loan.id).all()]

    def count_active(self, student_id: Optional[str] = None) -> int:
        q = self.db.query(Loan).filter(Loan.return_date.is_(None))
        if student_id:
            q = q.filter(Loan.student_id == normalize_student_id(student_id))
        return self._count(q)

    def count_overdue(self, as_of=None, student_id: Optional[str] = None) -> int:
        q = self._overdue(as_of)
        if student_id:
            q = q.filter(Loan.student_id == normalize_student_id(student_id))
        return self._count(q)

    def create(self, book_id: int, student_id: str, issue_date, due_date=None,
               librarian_id: Optional[int] = None, commit=True) -> Loan:
        loan = Loan(
            book_id=book_id,
            student_id=student_id,
            librarian_id=librarian_id,
            issue_date=as_datetime(issue_date),
            due_date=as_datetime(due_date) if due_date is not None else None,
            return_date=None,
            renewal_count=0,
        )
        return self.add(loan, commit=commit)

    def record_return(self, loan_id: int, return_date, commit=True) -> Loan:
        loan = self.get(loan_id)
        if not loan.is_active:
            raise InvalidState(f"Loan #{loan_id} was already returned on {loan.return_date:%Y-%m-%d}.")
        loan.return_date = as_datetime(return_date)
        return self.save(loan, commit=commit)

    def update(self, loan_id: int, changes, commit=True) -> Loan:
        """Administrative edit of the due date or renewal count."""
        loan = self.get(loan_id)
        values = changes.model_dump(exclude_unset=True)
        if values.get('due_date') is not None:
            due_date = as_datetime(values['due_date'])
            if due_date < loan.issue_date:
                raise ValidationError("Due date cannot be before the issue date.")
            loan.due_date = due_date
        if values.get('renewal_count') is not None:
            loan.renewal_count = values['renewal_count']
        return self.save(loan, commit=commit)

    def delete(self, loan_id: int, commit=True):
        loan = self.get(loan_id)
        if loan.is_active:
            raise InvalidState(
                f"Loan #{loan_id} is still active; record its return before deleting it.")
        referencing = self.db.query(Fine).filter(Fine.loan_id == loan_id)
        if self._count(referencing):
            ids = self.sample_ids(referencing, Fine.id)
            raise ReferentialConflict(
                f"Cannot delete this loan because fine(s) "
                f"{self.describe_ids(ids, referencing)} still reference it.", ids=ids)
        self.remove(loan, commit=commit)
        logger.info(f"Deleted loan {loan_id}")


class FineLedger(Repository):

    model = Fine
    not_found = FineNotFoundError

    def get(self, fine_id: int) -> Fine:
        return self._get(fine_id)

    def get_for_loan(self, loan_id: int) -> Optional[Fine]:
        with self.reading('look up'):
            return self.db.query(Fine).filter(Fine.loan_id == loan_id).first()

    def list(self, status=None, student_id: Optional[str] = None, offset=None, limit=None):
        q = self.db.query(Fine).options(joinedload(Fine.loan))
        if status is not None:
            q = q.filter(Fine.status == fine_status(status))
        if student_id:
            q = q.join(Fine.loan).filter(Loan.student_id == normalize_student_id(student_id))
        q = q.order_by(Fine.date_calculated.desc(), Fine.id.desc())
        return self._all(q.offset(offset).limit(limit))

    def list_by_status(self, status):
        return self.list(status=status)

    def list_unfined_overdue_loans(self, as_of=None):
        """Loans that are overdue, or were returned late, and have no fine
        yet. These are the candidates for filing a fine by hand.
        """
        as_of = as_datetime(as_of) if as_of is not None else today()
        q = (
            self.db.query(Loan)
            .options(joinedload(Loan.book), joinedload(Loan.student))
            .outerjoin(Fine, Fine.loan_id == Loan.id)
            .filter(Fine.id.is_(None), Loan.due_date.isnot(None))
            .filter(or_(
                and_(Loan.return_date.is_(None), Loan.due_date < as_of),
                Loan.return_date > Loan.due_date,
            ))
            .order_by(Loan.due_date.desc(), Loan.id.desc())
        )
        return self._all(q)

    def total_unpaid(self, student_id: Optional[str] = None) -> Decimal:
        with self.reading('aggregate'):
            q = self.db.query(func.coalesce(func.sum(Fine.amount), 0)).filter(
                Fine.status == FineStatus.UNPAID)
            if student_id:
                q = q.join(Loan, Fine.loan_id == Loan.id).filter(
                    Loan.student_id == normalize_student_id(student_id))
            total = q.scalar()
        return Decimal(str(total or 0))

    def create(self, loan_id: int, amount, date_calculated=None, commit=True) -> Fine:
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValidationError("Fine amount must be greater than zero.")
        LoanLedger(self.db).get(loan_id)
        if existing := self.get_for_loan(loan_id):
            raise InvalidState(f"Loan #{loan_id} already has fine #{existing.id}.")
        fine = Fine(
            loan_id=loan_id,
            amount=amount,
            status=FineStatus.UNPAID,
            date_calculated=as_datetime(date_calculated) if date_calculated else today(),
        )
        fine = self.add(fine, commit=commit)
        logger.info(f"Filed fine of {amount} against loan {loan_id}")
        return fine

    def update(self, fine_id: int, changes, commit=True) -> Fine:
        """Administrative edit of amount or status."""
        fine = self.get(fine_id)
        values = changes.model_dump(exclude_unset=True)
        if values.get('amount') is not None:
            fine.amount = Decimal(str(values['amount']))
        if values.get('status') is not None:
            fine.status = fine_status(values['status'])
        return self.save(fine, commit=commit)

    def mark_paid(self, fine_id: int, commit=True) -> Fine:
        fine = self.get(fine_id)
        if fine.status == FineStatus.PAID:
            return fine
        fine.status = FineStatus.PAID
        return self.save(fine, commit=commit)

    def delete(self, fine_id: int, commit=True):
        fine = self.get(fine_id)
        self.remove(fine, commit=commit)
        logger.info(f"Deleted fine {fine_id}")
