# medicore/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All pharmacy tables inherit from this."""
    pass


# Import all models so metadata is complete for create_all()
from medicore.models import (  # noqa: F401,E402
    medicine,
    prescription,
    supplier,
    rx_counter,
)
