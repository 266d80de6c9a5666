"""
Module ORM Registry (``practice_modules._orm_registry``).

Responsibility
--------------
Import every module-level SQLAlchemy ORM model so that ``Base.metadata``
holds their table definitions before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``practice_kernel.db.engine.create_tables``; the kernel never imports module
code at import time.
"""


def import_all_orm_models() -> None:
    """Import every ``practice_modules.*.orm`` module.  Idempotent."""
    import practice_modules.accounts_production.orm  # noqa: F401
