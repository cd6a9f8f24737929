# medicore/models/rx_counter.py
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Integer, String, UniqueConstraint

from medicore.db.base import Base


class RxCounter(Base):
    """Last prescription sequence issued per number prefix and hospital-local day."""
    __tablename__ = "pharmacy_rx_counters"
    __table_args__ = (
        UniqueConstraint("prefix", "issued_on", name="uq_pharmacy_rx_counter_day"),
    )

    id = Column(Integer, primary_key=True)
    prefix = Column(String(20), nullable=False, default="")
    issued_on = Column(Date, nullable=False)
    last_seq = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
