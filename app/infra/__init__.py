"""Infrastructure helpers: Unit of Work and token decoding."""

from .unit_of_work import SqlAlchemyUnitOfWork, UnitOfWork

__all__ = ["UnitOfWork", "SqlAlchemyUnitOfWork"]
