"""
Module ORM Registry (``review_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before ``create_tables()`` runs.

Usage
-----
``review_kernel.db.engine.create_tables()`` and ``drop_tables()`` call
``import_all_orm_models()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``review_modules.*.orm`` module (idempotent)."""
    import review_kernel.models  # noqa: F401
    # fmt: off
    import review_modules.reference.orm  # noqa: F401
    import review_modules.events.orm  # noqa: F401
    import review_modules.expenses.orm  # noqa: F401
    import review_modules.allocations.orm  # noqa: F401
    # fmt: on
