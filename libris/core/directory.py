#!/usr/bin/env python

"""
    People for Libris: departments, students and librarians.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from typing import Optional
from libris.core.repository import Repository
from libris.core.models import Department, Librarian, Loan, Student
from libris.core.identifiers import (
    department_of,
    normalize_student_id,
    validate_student_id,
)
from libris.core.exceptions import (
    DepartmentNotFoundError,
    LibrarianNotFoundError,
    ReferentialConflict,
    StudentNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class DepartmentDirectory(Repository):

    model = Department
    not_found = DepartmentNotFoundError

    def get(self, dept_id: str) -> Department:
        return self._get((dept_id or '').upper())

    def list(self):
        return self._all(self.db.query(Department).order_by(Department.name))


class StudentDirectory(Repository):

    model = Student
    not_found = StudentNotFoundError
    UNIQUE_FIELDS = ('student_id', 'email')

    def get(self, student_id: str) -> Student:
        if not validate_student_id(student_id):
            raise ValidationError(f"'{student_id}' is not a valid student id.")
        return self._get(normalize_student_id(student_id))

    def find_by_email(self, email: str) -> Optional[Student]:
        with self.reading('look up'):
            return self.db.query(Student).filter(Student.email == email.strip().lower()).first()

    def list(self, query: Optional[str] = None, dept_id: Optional[str] = None,
             offset=None, limit=None):
        q = self.db.query(Student)
        if query and query.strip():
            pattern = f"%{query.strip()}%"
            q = q.filter(Student.name.ilike(pattern) | Student.student_id.ilike(pattern))
        if dept_id:
            q = q.filter(Student.dept_id == dept_id.upper())
        return self._all(q.order_by(Student.student_id).offset(offset).limit(limit))

    def count(self) -> int:
        return self._count(self.db.query(Student))

    def dept_ids(self):
        """Department code of every registered student."""
        with self.reading('list'):
            return [row[0] for row in self.db.query(Student.dept_id).all()]

    def create(self, student, commit=True) -> Student:
        values = student.model_dump()
        values['dept_id'] = values.get('dept_id') or department_of(values['student_id'])
        DepartmentDirectory(self.db).get(values['dept_id'])
        self.check_unique(values)
        created = self.add(Student(**values), commit=commit)
        logger.info(f"Registered student {created.student_id}")
        return created

    def update(self, student_id: str, changes, commit=True) -> Student:
        student = self.get(student_id)
        values = changes.model_dump(exclude_unset=True)
        self.check_unique(values, exclude=student.student_id)
        if values.get('dept_id'):
            DepartmentDirectory(self.db).get(values['dept_id'])
        for key, value in values.items():
            if value is not None:
                setattr(student, key, value)
        return self.save(student, commit=commit)

    def delete(self, student_id: str, commit=True):
        student = self.get(student_id)
        referencing = self.db.query(Loan).filter(Loan.student_id == student.student_id)
        if self._count(referencing):
            ids = self.sample_ids(referencing, Loan.id)
            raise ReferentialConflict(
                f"Cannot delete this student because loan(s) "
                f"{self.describe_ids(ids, referencing)} still reference them.", ids=ids)
        self.remove(student, commit=commit)
        logger.info(f"Deleted student {student.student_id}")


class LibrarianDirectory(Repository):

    model = Librarian
    not_found = LibrarianNotFoundError
    UNIQUE_FIELDS = ('email',)

    def get(self, librarian_id: int) -> Librarian:
        return self._get(librarian_id)

    def find_by_email(self, email: str) -> Optional[Librarian]:
        with self.reading('look up'):
            return self.db.query(Librarian).filter(Librarian.email == email.strip().lower()).first()

    def list(self, offset=None, limit=None):
        return self._all(self.db.query(Librarian).order_by(Librarian.id).offset(offset).limit(limit))

    def create(self, librarian, commit=True) -> Librarian:
        values = librarian.model_dump()
        values['email'] = values['email'].strip().lower()
        self.check_unique(values)
        created = self.add(Librarian(**values), commit=commit)
        logger.info(f"Registered librarian {created.id} <{created.email}>")
        return created

    def update(self, librarian_id: int, changes, commit=True) -> Librarian:
        librarian = self.get(librarian_id)
        values = changes.model_dump(exclude_unset=True)
        if values.get('email'):
            values['email'] = values['email'].strip().lower()
        self.check_unique(values, exclude=librarian_id)
        for key, value in values.items():
            setattr(librarian, key, value)
        return self.save(librarian, commit=commit)

    def delete(self, librarian_id: int, commit=True):
        librarian = self.get(librarian_id)
        referencing = self.db.query(Loan).filter(Loan.librarian_id == librarian_id)
        if self._count(referencing):
            ids = self.sample_ids(referencing, Loan.id)
            raise ReferentialConflict(
                f"Cannot delete this librarian because loan(s) "
                f"{self.describe_ids(ids, referencing)} still reference them.", ids=ids)
        self.remove(librarian, commit=commit)
        logger.info(f"Deleted librarian {librarian_id}")
