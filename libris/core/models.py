#!/usr/bin/env python

"""
    Models for Libris,
    the catalog (authors, books), people (departments, students,
    librarians, accounts) and the lending ledgers (loans, fines).

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
from sqlalchemy import (
    Column, String, Integer, DateTime, Numeric, ForeignKey,
    CheckConstraint, Enum as SQLAlchemyEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from libris.core.db import Base
from libris.core.identifiers import DEPARTMENTS


class Role(enum.Enum):
    STUDENT = 'student'
    LIBRARIAN = 'librarian'


class FineStatus(enum.Enum):
    UNPAID = 'Unpaid'
    PAID = 'Paid'


class Department(Base):
    __tablename__ = 'departments'

    id = Column(String(2), primary_key=True)
    name = Column(String(100), nullable=False)

    @classmethod
    def seed(cls, db):
        """Inserts any missing codes of the static department set."""
        existing = {d.id for d in db.query(cls).all()}
        missing = [cls(id=code, name=name) for code, name in DEPARTMENTS.items()
                   if code not in existing]
        if missing:
            db.add_all(missing)
            db.commit()
        return missing


class Author(Base):
    __tablename__ = 'authors'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)

    books = relationship('Book', back_populates='author')


class Book(Base):
    __tablename__ = 'books'
    __table_args__ = (
        CheckConstraint('available_copies >= 0', name='ck_books_available_nonnegative'),
        CheckConstraint('available_copies <= total_copies', name='ck_books_available_le_total'),
    )

    id = Column(Integer, primary_key=True)
    title = Column(String(255), unique=True, nullable=False)
    author_id = Column(Integer, ForeignKey('authors.id'), nullable=True)
    publisher = Column(String(255))
    year = Column(Integer)
    available_copies = Column(Integer, default=0, nullable=False)
    total_copies = Column(Integer, default=0, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    author = relationship('Author', back_populates='books')
    loans = relationship('Loan', back_populates='book')

    # every UPDATE checks and bumps `version`; a stale row raises StaleDataError
    __mapper_args__ = {'version_id_col': version}

    @property
    def author_name(self):
        return self.author.name if self.author else None

    @hybrid_property
    def is_borrowable(self):
        return self.available_copies > 0


class Student(Base):
    __tablename__ = 'students'

    student_id = Column(String(10), primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    contact = Column(String(20))
    year = Column(Integer)
    dept_id = Column(String(2), ForeignKey('departments.id'), nullable=False)
    created_at = Column(DateTime(timezone=True), default=func.now())

    department = relationship('Department')
    loans = relationship('Loan', back_populates='student')


class Librarian(Base):
    __tablename__ = 'librarians'

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(100))
    role = Column(String(50))
    created_at = Column(DateTime(timezone=True), default=func.now())


class Account(Base):
    """Sign-in credentials; the profile lives in Student or Librarian."""
    __tablename__ = 'accounts'

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLAlchemyEnum(Role), nullable=False)
    created_at = Column(DateTime(timezone=True), default=func.now())


class RevokedToken(Base):
    """A signed-out session token, kept until it would have expired anyway."""
    __tablename__ = 'revoked_tokens'

    id = Column(Integer, primary_key=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)


class Loan(Base):
    __tablename__ = 'loans'
    __table_args__ = (
        CheckConstraint('renewal_count >= 0', name='ck_loans_renewal_nonnegative'),
    )

    id = Column(Integer, primary_key=True)
    book_id = Column(Integer, ForeignKey('books.id'), nullable=False)
    student_id = Column(String(10), ForeignKey('students.student_id'), nullable=False)
    librarian_id = Column(Integer, ForeignKey('librarians.id'), nullable=True)
    issue_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=True)
    return_date = Column(DateTime, nullable=True)
    renewal_count = Column(Integer, default=0, nullable=False)

    book = relationship('Book', back_populates='loans')
    student = relationship('Student', back_populates='loans')
    librarian = relationship('Librarian')
    fine = relationship('Fine', back_populates='loan', uselist=False)

    @property
    def is_active(self):
        return self.return_date is None

    @property
    def returned_late(self):
        return (self.return_date is not None and self.due_date is not None
                and self.return_date > self.due_date)

    @property
    def book_title(self):
        return self.book.title if self.book else None

    @property
    def student_name(self):
        return self.student.name if self.student else None


class Fine(Base):
    __tablename__ = 'fines'
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_fines_amount_positive'),
    )

    id = Column(Integer, primary_key=True)
    # at most one fine per loan
    loan_id = Column(Integer, ForeignKey('loans.id'), unique=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLAlchemyEnum(FineStatus), default=FineStatus.UNPAID, nullable=False)
    date_calculated = Column(DateTime, nullable=False)

    loan = relationship('Loan', back_populates='fine')

    @hybrid_property
    def is_paid(self):
        return self.status == FineStatus.PAID
