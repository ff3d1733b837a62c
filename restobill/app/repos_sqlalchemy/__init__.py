"""SQLAlchemy-backed repository implementations.

Each module exposes plain ``async`` helpers operating on an
:class:`~sqlalchemy.ext.asyncio.AsyncSession` plus a small class binding a
session to the matching interface from :mod:`..repos`.
"""

from .invoices_repo_sql import SqlInvoicesRepo, SqlReconciliationRepo
from .menu_repo_sql import SqlMenuRepo
from .orders_repo_sql import SqlOrdersRepo

__all__ = [
    "SqlInvoicesRepo",
    "SqlReconciliationRepo",
    "SqlMenuRepo",
    "SqlOrdersRepo",
]
