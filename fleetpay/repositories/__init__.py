from fleetpay.repositories.base import Store, EarningQuery, ExpenseQuery
from fleetpay.repositories.memory import InMemoryStore
from fleetpay.repositories.sql import SqlAlchemyStore

__all__ = ["Store", "EarningQuery", "ExpenseQuery", "InMemoryStore", "SqlAlchemyStore"]
