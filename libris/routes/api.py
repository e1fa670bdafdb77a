#!/usr/bin/env python

"""
    API routes for Libris,
    catalog, people, loans, fines, reports and sessions.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
from typing import List, Optional
from fastapi import (
    APIRouter,
    Cookie,
    Depends,
    Query,
    Request,
    Response,
    status,
)
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session as DBSession
from libris.configs import POPULAR_BOOKS_LIMIT, SESSION_TTL, SCHEME
from libris.core.db import get_db
from libris.core.auth import AuthService, AuthSession
from libris.core.catalog import AuthorRepository, CatalogRepository
from libris.core.directory import DepartmentDirectory, LibrarianDirectory, StudentDirectory
from libris.core.ledgers import FineLedger, LoanLedger
from libris.core.lifecycle import LoanLifecycleService
from libris.core.reports import ReportingService
from libris.core.exceptions import (
    AuthenticationError,
    BackendUnavailable,
    InsufficientCopies,
    InvalidState,
    LibrisAPIError,
    NotFoundError,
    PermissionDeniedError,
    ReferentialConflict,
    ValidationError,
)
from libris.schemas import author, book, department, fine, librarian, loan, report, student
from libris.schemas.auth import Session, SignInRequest, SignUpRequest

logger = logging.getLogger(__name__)

COOKIE_NAME = "session"

ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ReferentialConflict, status.HTTP_409_CONFLICT),
    (InsufficientCopies, status.HTTP_409_CONFLICT),
    (InvalidState, status.HTTP_409_CONFLICT),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (BackendUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)

router = APIRouter()


def error_response(error: LibrisAPIError) -> JSONResponse:
    code = next((code for cls, code in ERROR_STATUS if isinstance(error, cls)),
                status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=code, content=error.to_dict())


def session_token(request: Request, session: Optional[str] = Cookie(None)) -> Optional[str]:
    """Token from the session cookie or an `Authorization: Bearer` header."""
    if not session:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session = auth_header.split(" ")[1]
    return session


def current_session(token: Optional[str] = Depends(session_token),
                    db: DBSession = Depends(get_db)) -> AuthSession:
    if auth := AuthService(db).get_session(token):
        return auth
    raise AuthenticationError("Not authenticated; sign in to continue.")


def librarian_session(auth: AuthSession = Depends(current_session)) -> AuthSession:
    if not auth.is_librarian:
        raise PermissionDeniedError("Only librarians may perform this action.")
    return auth


def _own_student_id(auth: AuthSession, student_id: Optional[str]) -> Optional[str]:
    """Students only ever see their own records."""
    return student_id if auth.is_librarian else auth.student_id


def _set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=SESSION_TTL,
        httponly=True,
        secure=SCHEME == 'https',
        samesite="Lax",
        path="/"
    )


# Sessions

@router.post("/auth/signup", response_model=Session, status_code=status.HTTP_201_CREATED)
def sign_up(payload: SignUpRequest, response: Response, db: DBSession = Depends(get_db)):
    auth = AuthService(db).sign_up(payload)
    _set_session_cookie(response, auth.token)
    return Session(email=auth.email, role=auth.role.value, user_id=auth.user_id,
                   issued_at=auth.issued_at, token=auth.token)


@router.post("/auth/signin", response_model=Session)
def sign_in(payload: SignInRequest, response: Response, db: DBSession = Depends(get_db)):
    auth = AuthService(db).sign_in(payload.email, payload.password)
    _set_session_cookie(response, auth.token)
    return Session(email=auth.email, role=auth.role.value, user_id=auth.user_id,
                   issued_at=auth.issued_at, token=auth.token)


@router.api_route("/auth/signout", methods=["GET", "POST"])
def sign_out(response: Response, token: Optional[str] = Depends(session_token),
             db: DBSession = Depends(get_db)):
    AuthService(db).sign_out(token)
    response.delete_cookie(key=COOKIE_NAME, path="/", samesite="Lax")
    return {"success": True, "message": "Signed out successfully"}


@router.get("/auth/session")
def get_session(token: Optional[str] = Depends(session_token), db: DBSession = Depends(get_db)):
    auth = AuthService(db).get_session(token)
    return {
        "logged_in": bool(auth),
        "session": Session(email=auth.email, role=auth.role.value, user_id=auth.user_id,
                           issued_at=auth.issued_at).model_dump(mode="json") if auth else None,
    }


# Departments

@router.get("/departments", response_model=List[department.Department])
def list_departments(db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return DepartmentDirectory(db).list()


@router.get("/departments/{dept_id}", response_model=department.Department)
def get_department(dept_id: str, db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return DepartmentDirectory(db).get(dept_id)


# Authors

@router.get("/authors", response_model=List[author.Author])
def list_authors(q: Optional[str] = None, offset: Optional[int] = None, limit: Optional[int] = None,
                 db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return AuthorRepository(db).list(query=q, offset=offset, limit=limit)


@router.post("/authors", response_model=author.Author, status_code=status.HTTP_201_CREATED)
def create_author(payload: author.AuthorCreate, db: DBSession = Depends(get_db),
                  auth=Depends(librarian_session)):
    return AuthorRepository(db).create(payload)


@router.get("/authors/{author_id}", response_model=author.Author)
def get_author(author_id: int, db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return AuthorRepository(db).get(author_id)


@router.patch("/authors/{author_id}", response_model=author.Author)
def update_author(author_id: int, payload: author.AuthorUpdate, db: DBSession = Depends(get_db),
                  auth=Depends(librarian_session)):
    return AuthorRepository(db).update(author_id, payload)


@router.delete("/authors/{author_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_author(author_id: int, db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    AuthorRepository(db).delete(author_id)


# Books

@router.get("/books", response_model=List[book.Book])
def list_books(q: Optional[str] = None, author_id: Optional[int] = None,
               available_only: bool = False, order_by: str = 'id', descending: bool = False,
               offset: Optional[int] = None, limit: Optional[int] = None,
               db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return CatalogRepository(db).list(
        query=q, author_id=author_id, available_only=available_only,
        order_by=order_by, descending=descending, offset=offset, limit=limit)


@router.post("/books", response_model=book.Book, status_code=status.HTTP_201_CREATED)
def create_book(payload: book.BookCreate, db: DBSession = Depends(get_db),
                auth=Depends(librarian_session)):
    return CatalogRepository(db).create(payload)


@router.get("/books/{book_id}", response_model=book.Book)
def get_book(book_id: int, db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return CatalogRepository(db).get(book_id)


@router.patch("/books/{book_id}", response_model=book.Book)
def update_book(book_id: int, payload: book.BookUpdate, db: DBSession = Depends(get_db),
                auth=Depends(librarian_session)):
    return CatalogRepository(db).update(book_id, payload)


@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(book_id: int, db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    CatalogRepository(db).delete(book_id)


# Students

@router.get("/students", response_model=List[student.Student])
def list_students(q: Optional[str] = None, dept_id: Optional[str] = None,
                  offset: Optional[int] = None, limit: Optional[int] = None,
                  db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    return StudentDirectory(db).list(query=q, dept_id=dept_id, offset=offset, limit=limit)


@router.post("/students", response_model=student.Student, status_code=status.HTTP_201_CREATED)
def create_student(payload: student.StudentCreate, db: DBSession = Depends(get_db),
                   auth=Depends(librarian_session)):
    return StudentDirectory(db).create(payload)


@router.get("/students/{student_id}", response_model=student.Student)
def get_student(student_id: str, db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return StudentDirectory(db).get(_own_student_id(auth, student_id))


@router.get("/students/{student_id}/summary", response_model=report.StudentSummary)
def get_student_summary(student_id: str, as_of: Optional[datetime.date] = None,
                        db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return ReportingService(db).student_summary(_own_student_id(auth, student_id), as_of=as_of)


@router.patch("/students/{student_id}", response_model=student.Student)
def update_student(student_id: str, payload: student.StudentUpdate,
                   db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return StudentDirectory(db).update(_own_student_id(auth, student_id), payload)


@router.delete("/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: str, db: DBSession = Depends(get_db),
                   auth=Depends(librarian_session)):
    StudentDirectory(db).delete(student_id)


# Librarians

@router.get("/librarians", response_model=List[librarian.Librarian])
def list_librarians(offset: Optional[int] = None, limit: Optional[int] = None,
                    db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    return LibrarianDirectory(db).list(offset=offset, limit=limit)


@router.post("/librarians", response_model=librarian.Librarian, status_code=status.HTTP_201_CREATED)
def create_librarian(payload: librarian.LibrarianCreate, db: DBSession = Depends(get_db),
                     auth=Depends(librarian_session)):
    return LibrarianDirectory(db).create(payload)


@router.get("/librarians/{librarian_id}", response_model=librarian.Librarian)
def get_librarian(librarian_id: int, db: DBSession = Depends(get_db),
                  auth=Depends(librarian_session)):
    return LibrarianDirectory(db).get(librarian_id)


@router.patch("/librarians/{librarian_id}", response_model=librarian.Librarian)
def update_librarian(librarian_id: int, payload: librarian.LibrarianUpdate,
                     db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    return LibrarianDirectory(db).update(librarian_id, payload)


@router.delete("/librarians/{librarian_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_librarian(librarian_id: int, db: DBSession = Depends(get_db),
                     auth=Depends(librarian_session)):
    LibrarianDirectory(db).delete(librarian_id)


# Loans

@router.get("/loans", response_model=List[loan.Loan])
def list_loans(student_id: Optional[str] = None, book_id: Optional[int] = None,
               active: Optional[bool] = None, offset: Optional[int] = None,
               limit: Optional[int] = None, db: DBSession = Depends(get_db),
               auth=Depends(current_session)):
    return LoanLedger(db).list(student_id=_own_student_id(auth, student_id), book_id=book_id,
                               active=active, offset=offset, limit=limit)


@router.get("/loans/active", response_model=List[loan.Loan])
def list_active_loans(student_id: Optional[str] = None, db: DBSession = Depends(get_db),
                      auth=Depends(current_session)):
    return LoanLifecycleService(db).active_loans(_own_student_id(auth, student_id))


@router.get("/loans/overdue", response_model=List[loan.Loan])
def list_overdue_loans(as_of: Optional[datetime.date] = None, db: DBSession = Depends(get_db),
                       auth=Depends(librarian_session)):
    return LoanLifecycleService(db).overdue_loans(as_of)


@router.post("/loans", response_model=loan.Loan, status_code=status.HTTP_201_CREATED)
def issue_book(payload: loan.IssueRequest, db: DBSession = Depends(get_db),
               auth: AuthSession = Depends(librarian_session)):
    return LoanLifecycleService(db).issue(
        student_id=payload.student_id,
        book_id=payload.book_id,
        librarian_id=auth.librarian_id,
        issue_date=payload.issue_date,
        due_date=payload.due_date,
    )


@router.get("/loans/{loan_id}", response_model=loan.Loan)
def get_loan(loan_id: int, db: DBSession = Depends(get_db), auth=Depends(current_session)):
    record = LoanLedger(db).get(loan_id)
    if not auth.is_librarian and record.student_id != auth.student_id:
        raise PermissionDeniedError("This loan belongs to another student.")
    return record


@router.patch("/loans/{loan_id}", response_model=loan.Loan)
def update_loan(loan_id: int, payload: loan.LoanUpdate, db: DBSession = Depends(get_db),
                auth=Depends(librarian_session)):
    return LoanLedger(db).update(loan_id, payload)


@router.delete("/loans/{loan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_loan(loan_id: int, db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    LoanLedger(db).delete(loan_id)


@router.post("/loans/{loan_id}/return", response_model=loan.ReturnReceipt)
def return_book(loan_id: int, payload: Optional[loan.ReturnRequest] = None,
                db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    return_date = payload.return_date if payload else None
    receipt = LoanLifecycleService(db).return_book(loan_id, return_date=return_date)
    return loan.ReturnReceipt(
        loan=loan.Loan.model_validate(receipt.loan),
        fine=fine.Fine.model_validate(receipt.fine) if receipt.fine else None,
    )


@router.post("/loans/{loan_id}/renew", response_model=loan.Loan)
def renew_loan(loan_id: int, payload: Optional[loan.RenewRequest] = None,
               db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    return LoanLifecycleService(db).renew(loan_id, days=payload.days if payload else None)


# Fines

@router.get("/fines", response_model=List[fine.Fine])
def list_fines(fine_status: Optional[str] = Query(None, alias="status"), student_id: Optional[str] = None,
               offset: Optional[int] = None, limit: Optional[int] = None,
               db: DBSession = Depends(get_db), auth=Depends(current_session)):
    return FineLedger(db).list(status=fine_status, student_id=_own_student_id(auth, student_id),
                               offset=offset, limit=limit)


@router.get("/fines/pending-loans", response_model=List[loan.Loan])
def list_unfined_overdue_loans(as_of: Optional[datetime.date] = None,
                               db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    return FineLedger(db).list_unfined_overdue_loans(as_of)


@router.post("/fines", response_model=fine.Fine, status_code=status.HTTP_201_CREATED)
def create_fine(payload: fine.FineCreate, db: DBSession = Depends(get_db),
                auth=Depends(librarian_session)):
    return FineLedger(db).create(payload.loan_id, payload.amount,
                                 date_calculated=payload.date_calculated)


@router.get("/fines/{fine_id}", response_model=fine.Fine)
def get_fine(fine_id: int, db: DBSession = Depends(get_db), auth=Depends(current_session)):
    record = FineLedger(db).get(fine_id)
    if not auth.is_librarian and record.loan.student_id != auth.student_id:
        raise PermissionDeniedError("This fine belongs to another student.")
    return record


@router.patch("/fines/{fine_id}", response_model=fine.Fine)
def update_fine(fine_id: int, payload: fine.FineUpdate, db: DBSession = Depends(get_db),
                auth=Depends(librarian_session)):
    return FineLedger(db).update(fine_id, payload)


@router.delete("/fines/{fine_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_fine(fine_id: int, db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    FineLedger(db).delete(fine_id)


@router.post("/fines/{fine_id}/pay", response_model=fine.Fine)
def pay_fine(fine_id: int, db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    return LoanLifecycleService(db).pay_fine(fine_id)


# Reports

@router.get("/reports/popular-books", response_model=List[report.PopularBook])
def popular_books(n: int = Query(POPULAR_BOOKS_LIMIT, ge=1), db: DBSession = Depends(get_db),
                  auth=Depends(librarian_session)):
    return ReportingService(db).popular_books(n)


@router.get("/reports/departments", response_model=List[report.DepartmentCount])
def department_counts(db: DBSession = Depends(get_db), auth=Depends(librarian_session)):
    return ReportingService(db).department_breakdown()


@router.get("/reports/overdue", response_model=report.OverdueSummary)
def overdue_summary(as_of: Optional[datetime.date] = None, db: DBSession = Depends(get_db),
                    auth=Depends(librarian_session)):
    return ReportingService(db).overdue_summary(as_of)


@router.get("/reports/dashboard", response_model=report.DashboardStats)
def dashboard(as_of: Optional[datetime.date] = None, db: DBSession = Depends(get_db),
              auth=Depends(librarian_session)):
    return ReportingService(db).dashboard_stats(as_of)
