"""Generic repository over a SQLModel session."""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

ModelT = TypeVar("ModelT", bound=SQLModel)


class BaseRepository(Generic[ModelT]):
    """Create, read, update and delete rows of one table model.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, session: Session, model: Type[ModelT]):
        """
        Args:
            session: SQLModel session
            model: Table model this repository reads and writes
        """
        self.session = session
        self.model = model

    def get(self, id: str) -> Optional[ModelT]:
        return self.session.get(self.model, id)

    def count(self) -> int:
        stmt = select(func.count()).select_from(self.model)
        return int(self.session.exec(stmt).one())

    def add(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        self.session.flush()
        return entity

    def update(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        self.session.flush()
        return entity

    def delete(self, entity: ModelT) -> None:
        self.session.delete(entity)
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
