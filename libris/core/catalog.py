#!/usr/bin/env python

"""
    Catalog for Libris: books, their authors and the per-book
    available copy count.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import joinedload
from libris.core.repository import Repository
from libris.core.models import Author, Book, Loan
from libris.core.exceptions import (
    AuthorNotFoundError,
    BookNotFoundError,
    InsufficientCopies,
    InvalidState,
    ReferentialConflict,
    ValidationError,
)

logger = logging.getLogger(__name__)


class AuthorRepository(Repository):

    model = Author
    not_found = AuthorNotFoundError

    def get(self, author_id: int) -> Author:
        return self._get(author_id)

    def list(self, query: Optional[str] = None, offset=None, limit=None):
        q = self.db.query(Author)
        if query:
            q = q.filter(Author.name.ilike(f"%{query.strip()}%"))
        return self._all(q.order_by(Author.name).offset(offset).limit(limit))

    def create(self, author, commit=True) -> Author:
        return self.add(Author(name=author.name.strip()), commit=commit)

    def update(self, author_id: int, changes, commit=True) -> Author:
        author = self.get(author_id)
        if changes.name is not None:
            author.name = changes.name.strip()
        return self.save(author, commit=commit)

    def delete(self, author_id: int, commit=True):
        author = self.get(author_id)
        referencing = self.db.query(Book).filter(Book.author_id == author_id)
        if self._count(referencing):
            ids = self.sample_ids(referencing, Book.id)
            raise ReferentialConflict(
                f"Cannot delete this author because book(s) "
                f"{self.describe_ids(ids, referencing)} still reference it.", ids=ids)
        self.remove(author, commit=commit)
        logger.info(f"Deleted author {author_id}")


class CatalogRepository(Repository):
    """Books and their available copy counts.

    Every read goes to the store, so a count mutation is visible to the
    next read in the same process.
    """

    model = Book
    not_found = BookNotFoundError
    UNIQUE_FIELDS = ('title',)

    ORDERINGS = {
        'id': Book.id,
        'title': Book.title,
        'year': Book.year,
        'available_copies': Book.available_copies,
    }

    def get(self, book_id: int) -> Book:
        return self._get(book_id)

    def list(self, query: Optional[str] = None, author_id: Optional[int] = None,
             available_only: bool = False, order_by: str = 'id',
             descending: bool = False, offset=None, limit=None):
        """Lists books, optionally searching title, publisher and author
        name case-insensitively.
        """
        q = self.db.query(Book).options(joinedload(Book.author))
        if query and query.strip():
            pattern = f"%{query.strip()}%"
            q = q.outerjoin(Book.author).filter(or_(
                Book.title.ilike(pattern),
                Book.publisher.ilike(pattern),
                Author.name.ilike(pattern),
            ))
        if author_id is not None:
            q = q.filter(Book.author_id == author_id)
        if available_only:
            q = q.filter(Book.available_copies > 0)
        column = self.ORDERINGS.get(order_by)
        if column is None:
            raise ValidationError(f"Cannot order books by '{order_by}'.")
        q = q.order_by(column.desc() if descending else column.asc())
        return self._all(q.offset(offset).limit(limit))

    def count(self) -> int:
        return self._count(self.db.query(Book))

    def titles(self, book_ids):
        if not book_ids:
            return {}
        with self.reading('list'):
            return dict(self.db.query(Book.id, Book.title).filter(Book.id.in_(book_ids)).all())

    def _check_author(self, author_id):
        if author_id is not None:
            AuthorRepository(self.db).get(author_id)

    def create(self, book, commit=True) -> Book:
        values = book.model_dump()
        values['title'] = values['title'].strip()
        if values.get('total_copies') is None:
            values['total_copies'] = values['available_copies']
        self.check_unique(values)
        self._check_author(values.get('author_id'))
        created = self.add(Book(**values), commit=commit)
        logger.info(f"Added book {created.id} '{created.title}' "
                    f"({created.available_copies}/{created.total_copies} copies)")
        return created

    def update(self, book_id: int, changes, commit=True) -> Book:
        book = self.get(book_id)
        values = changes.model_dump(exclude_unset=True)
        if values.get('title'):
            values['title'] = values['title'].strip()
        self.check_unique(values, exclude=book_id)
        if 'author_id' in values:
            self._check_author(values['author_id'])
        available = values.get('available_copies', book.available_copies)
        total = values.get('total_copies', book.total_copies)
        if 'available_copies' in values and 'total_copies' not in values:
            total = max(total, available)
            values['total_copies'] = total
        if available > total:
            raise ValidationError("Available copies cannot exceed total copies.")
        if 'available_copies' in values or 'total_copies' in values:
            on_loan = self._count(
                self.db.query(Loan).filter(Loan.book_id == book_id, Loan.return_date.is_(None)))
            if available + on_loan > total:
                raise ValidationError(
                    f"'{book.title}' has {on_loan} copies on loan; available ({available}) "
                    f"plus on loan cannot exceed total ({total}).")
        for key, value in values.items():
            setattr(book, key, value)
        return self.save(book, commit=commit)

    def delete(self, book_id: int, commit=True):
        book = self.get(book_id)
        referencing = self.db.query(Loan).filter(Loan.book_id == book_id)
        if self._count(referencing):
            ids = self.sample_ids(referencing, Loan.id)
            logger.warning(f"Refused to delete book {book_id}, referenced by loans {ids}")
            raise ReferentialConflict(
                f"Cannot delete this book because loan(s) "
                f"{self.describe_ids(ids, referencing)} still reference it.", ids=ids)
        self.remove(book, commit=commit)
        logger.info(f"Deleted book {book_id}")

    def decrement_available(self, book_id: int, commit=True) -> Book:
        book = self.get(book_id)
        if book.available_copies <= 0:
            raise InsufficientCopies(f"'{book.title}' does not have available copies.")
        book.available_copies -= 1
        return self.save(book, commit=commit)

    def increment_available(self, book_id: int, commit=True) -> Book:
        book = self.get(book_id)
        if book.available_copies >= book.total_copies:
            raise InvalidState(
                f"All {book.total_copies} copies of '{book.title}' are already on the shelf.")
        book.available_copies += 1
        return self.save(book, commit=commit)

