import pytest
from pydantic import ValidationError as SchemaValidationError

from libris.core.catalog import AuthorRepository, CatalogRepository
from libris.core.ledgers import LoanLedger
from libris.core.exceptions import (
    AuthorNotFoundError,
    BookNotFoundError,
    InsufficientCopies,
    InvalidState,
    ReferentialConflict,
    ValidationError,
)
from libris.schemas.author import AuthorCreate, AuthorUpdate
from libris.schemas.book import BookCreate, BookUpdate


def test_create_book_provisions_copies(db_session, book, author):
    assert book.available_copies == 1
    assert book.total_copies == 1
    assert book.author_name == author.name
    assert book.version == 1


def test_create_book_rejects_duplicate_title(db_session, book):
    with pytest.raises(ValidationError) as excinfo:
        CatalogRepository(db_session).create(BookCreate(title=" Operating System Concepts "))
    assert "already exists" in str(excinfo.value)


def test_create_book_rejects_unknown_author(db_session):
    with pytest.raises(AuthorNotFoundError):
        CatalogRepository(db_session).create(BookCreate(title="Orphan", author_id=999))


def test_book_schema_rejects_more_available_than_total():
    with pytest.raises(SchemaValidationError):
        BookCreate(title="Too many", available_copies=3, total_copies=2)


def test_get_missing_book(db_session):
    with pytest.raises(BookNotFoundError):
        CatalogRepository(db_session).get(42)


def test_list_search_and_filters(db_session, book, make_book):
    make_book("Database System Concepts", copies=0, publisher="McGraw Hill")
    make_book("Compilers", copies=2)
    catalog = CatalogRepository(db_session)

    assert [b.title for b in catalog.list(query="concepts", order_by="title")] == [
        "Database System Concepts", "Operating System Concepts"]
    assert [b.title for b in catalog.list(query="silberschatz")] == ["Operating System Concepts"]
    assert [b.title for b in catalog.list(query="mcgraw")] == ["Database System Concepts"]
    assert "Database System Concepts" not in [b.title for b in catalog.list(available_only=True)]
    assert [b.title for b in catalog.list(order_by="available_copies", descending=True)][0] == "Compilers"
    assert len(catalog.list(limit=2)) == 2
    assert catalog.count() == 3


def test_list_rejects_unknown_ordering(db_session):
    with pytest.raises(ValidationError):
        CatalogRepository(db_session).list(order_by="colour")


def test_decrement_and_increment_respect_bounds(db_session, book):
    catalog = CatalogRepository(db_session)
    assert catalog.decrement_available(book.id).available_copies == 0
    with pytest.raises(InsufficientCopies):
        catalog.decrement_available(book.id)
    assert catalog.increment_available(book.id).available_copies == 1
    with pytest.raises(InvalidState):
        catalog.increment_available(book.id)


def test_count_changes_are_visible_to_next_read(db_session, book):
    catalog = CatalogRepository(db_session)
    catalog.decrement_available(book.id)
    assert CatalogRepository(db_session).get(book.id).available_copies == 0


def test_update_book(db_session, book):
    catalog = CatalogRepository(db_session)
    updated = catalog.update(book.id, BookUpdate(publisher="Pearson", available_copies=3))
    assert updated.publisher == "Pearson"
    assert updated.available_copies == 3
    assert updated.total_copies == 3
    with pytest.raises(ValidationError):
        catalog.update(book.id, BookUpdate(total_copies=2))


def test_update_book_rejects_title_of_another_book(db_session, book, make_book):
    other = make_book("Compilers")
    with pytest.raises(ValidationError):
        CatalogRepository(db_session).update(other.id, BookUpdate(title=book.title))
    # keeping its own title is fine
    assert CatalogRepository(db_session).update(book.id, BookUpdate(title=book.title)).title == book.title


def test_delete_unreferenced_book(db_session, make_book):
    orphan = make_book("Compilers")
    catalog = CatalogRepository(db_session)
    catalog.delete(orphan.id)
    with pytest.raises(BookNotFoundError):
        catalog.get(orphan.id)


def test_delete_referenced_book_reports_bounded_sample(db_session, student, jan, make_book):
    popular = make_book("Compilers", copies=7)
    ledger = LoanLedger(db_session)
    loans = [ledger.create(popular.id, student.student_id, jan(1), jan(15)) for _ in range(7)]

    with pytest.raises(ReferentialConflict) as excinfo:
        CatalogRepository(db_session).delete(popular.id)

    assert excinfo.value.ids == [loan.id for loan in loans[:5]]
    assert excinfo.value.message.endswith("still reference it.")
    assert "..." in excinfo.value.message
    assert excinfo.value.to_dict()["error"] == "referential_conflict"


def test_author_crud_and_conflict(db_session, author, book):
    authors = AuthorRepository(db_session)
    assert authors.update(author.id, AuthorUpdate(name="A. Silberschatz")).name == "A. Silberschatz"
    assert [a.name for a in authors.list(query="silber")] == ["A. Silberschatz"]
    with pytest.raises(ReferentialConflict) as excinfo:
        authors.delete(author.id)
    assert excinfo.value.ids == [book.id]

    lonely = authors.create(AuthorCreate(name="Alfred Aho"))
    authors.delete(lonely.id)
    with pytest.raises(AuthorNotFoundError):
        authors.get(lonely.id)


def test_copy_edits_account_for_copies_on_loan(db_session, student, book, jan):
    LoanLedger(db_session).create(book.id, student.student_id, jan(1), jan(15))
    catalog = CatalogRepository(db_session)
    catalog.decrement_available(book.id)

    # one copy is out: the shelf cannot hold it again and the stock cannot drop below it
    with pytest.raises(ValidationError):
        catalog.update(book.id, BookUpdate(total_copies=0))
    with pytest.raises(ValidationError) as excinfo:
        catalog.update(book.id, BookUpdate(available_copies=1))
    assert "on loan" in str(excinfo.value)

    grown = catalog.update(book.id, BookUpdate(available_copies=2, total_copies=3))
    assert (grown.available_copies, grown.total_copies) == (2, 3)
    # unrelated edits are not blocked by the loan
    assert catalog.update(book.id, BookUpdate(publisher="Pearson")).publisher == "Pearson"
