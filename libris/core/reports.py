#!/usr/bin/env python

"""
    Reports for Libris. Every figure is recomputed from a fresh read of
    the ledgers; nothing is cached or maintained incrementally.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from collections import Counter
from typing import Dict, List
from libris.configs import POPULAR_BOOKS_LIMIT
from libris.core.catalog import CatalogRepository
from libris.core.directory import DepartmentDirectory, StudentDirectory
from libris.core.ledgers import FineLedger, LoanLedger
from libris.schemas.report import (
    DashboardStats,
    DepartmentCount,
    OverdueSummary,
    PopularBook,
    StudentSummary,
)

logger = logging.getLogger(__name__)


class ReportingService:

    def __init__(self, db):
        self.db = db
        self.catalog = CatalogRepository(db)
        self.loans = LoanLedger(db)
        self.fines = FineLedger(db)
        self.students = StudentDirectory(db)
        self.departments = DepartmentDirectory(db)

    def popular_books(self, n: int = POPULAR_BOOKS_LIMIT) -> List[PopularBook]:
        """Top `n` books by number of loans. Books with equal counts keep
        the order in which they were first lent.
        """
        book_ids = self.loans.lent_book_ids()
        # Counter preserves first-seen order and sorted() is stable
        ranked = sorted(Counter(book_ids).items(), key=lambda pair: -pair[1])[:max(n, 0)]
        titles = self.catalog.titles([book_id for book_id, _ in ranked])
        return [PopularBook(book_id=book_id, title=titles.get(book_id), count=count)
                for book_id, count in ranked]

    def department_student_counts(self) -> Dict[str, int]:
        return dict(sorted(Counter(self.students.dept_ids()).items()))

    def department_breakdown(self) -> List[DepartmentCount]:
        names = {d.id: d.name for d in self.departments.list()}
        return [DepartmentCount(dept_id=dept_id, name=names.get(dept_id, 'Unknown'), count=count)
                for dept_id, count in self.department_student_counts().items()]

    def overdue_summary(self, as_of=None) -> OverdueSummary:
        return OverdueSummary(
            count=len(self.loans.list_overdue(as_of)),
            total_unpaid_fines=float(self.fines.total_unpaid()),
        )

    def dashboard_stats(self, as_of=None) -> DashboardStats:
        return DashboardStats(
            total_books=self.catalog.count(),
            total_students=self.students.count(),
            active_loans=self.loans.count_active(),
            overdue_loans=self.loans.count_overdue(as_of),
        )

    def student_summary(self, student_id: str, as_of=None) -> StudentSummary:
        student = self.students.get(student_id)
        return StudentSummary(
            student_id=student.student_id,
            active_loans=self.loans.count_active(student.student_id),
            overdue_loans=self.loans.count_overdue(as_of, student_id=student.student_id),
            unpaid_fines=float(self.fines.total_unpaid(student.student_id)),
        )
