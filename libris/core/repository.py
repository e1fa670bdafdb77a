import logging
from contextlib import contextmanager
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from libris.configs import CONFLICT_SAMPLE_SIZE
from libris.core.exceptions import (
    ValidationError,
    ConcurrentUpdateError,
    BackendUnavailable,
    NotFoundError,
)

logger = logging.getLogger(__name__)


class Repository:
    """Shared plumbing for the store-backed repositories and ledgers.

    Subclasses set `model`, `not_found` (the NotFoundError subclass to
    raise) and optionally `UNIQUE_FIELDS`, the columns whose values must
    not repeat across rows. Mutating methods accept `commit=False` so a
    service can flush several changes and commit them as one transaction.
    """

    model = None
    not_found = NotFoundError
    UNIQUE_FIELDS = ()

    def __init__(self, db):
        self.db = db

    @property
    def label(self):
        return self.model.__name__

    @contextmanager
    def reading(self, action='read'):
        """Translates store failures raised inside the block into
        BackendUnavailable.
        """
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action} {self.label}: {e}")
            raise BackendUnavailable(f"Failed to {action} {self.label.lower()} records: {e}.")

    def _get(self, pk):
        with self.reading('load'):
            obj = self.db.get(self.model, pk)
        if obj is None:
            raise self.not_found(f"{self.label} {pk} not found.")
        return obj

    def _all(self, query):
        with self.reading('list'):
            return query.all()

    def _count(self, query):
        with self.reading('count'):
            return query.count()

    def check_unique(self, values: dict, exclude=None):
        """Raises ValidationError when another row already holds one of the
        unique values. The database constraint still backs this up for
        concurrent writers, see `commit`.
        """
        for field in self.UNIQUE_FIELDS:
            value = values.get(field)
            if value is None:
                continue
            query = self.db.query(self.model).filter(getattr(self.model, field) == value)
            if exclude is not None:
                query = query.filter(self._pk_column() != exclude)
            if self._count(query):
                label = field.replace('_', ' ').capitalize()
                raise ValidationError(f"{label} '{value}' already exists. Please use a unique value.")

    def _pk_column(self):
        return self.model.__mapper__.primary_key[0]

    def sample_ids(self, query, column):
        """First CONFLICT_SAMPLE_SIZE ids of the rows matched by `query`."""
        rows = self._all(query.with_entities(column).order_by(column).limit(CONFLICT_SAMPLE_SIZE))
        return [row[0] for row in rows]

    def describe_ids(self, ids, query):
        listed = ', '.join(f"#{i}" for i in ids)
        if self._count(query) > len(ids):
            listed += '...'
        return listed

    def add(self, obj, commit=True):
        self.db.add(obj)
        return self.save(obj, commit=commit)

    def save(self, obj=None, commit=True):
        if commit:
            self.commit()
            if obj is not None:
                with self.reading('reload'):
                    self.db.refresh(obj)
        else:
            self.flush()
        return obj

    def remove(self, obj, commit=True):
        self.db.delete(obj)
        return self.save(commit=commit)

    def flush(self):
        self._finish(self.db.flush)

    def commit(self):
        self._finish(self.db.commit)

    def _finish(self, step):
        try:
            step()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"Concurrent update on {self.label}: {e}")
            raise ConcurrentUpdateError(
                f"{self.label} was modified by another request. Reload and try again.")
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Integrity error on {self.label}: {e.orig}")
            raise ValidationError(f"{self.label} violates a data constraint: {e.orig}.")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to write {self.label}: {e}")
            raise BackendUnavailable(f"Failed to save {self.label.lower()}: {e}.")
