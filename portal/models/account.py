from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String

from portal.core.clock import utcnow
from portal.db.db import Base


class Account(Base):
    """Row of the account table shared with the game server."""

    __tablename__ = "account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, index=True, nullable=False)

    # one-way hash only, see portal.core.security
    password = Column(String(255), nullable=False)

    question = Column(String(255), nullable=True)
    answer = Column(String(255), nullable=True)

    email = Column(String(100), nullable=True)
    phone = Column("sodienthoai", String(20), nullable=False, default="0")

    point = Column(BigInteger, nullable=False, default=0)
    is_online = Column(Boolean, nullable=False, default=False)
    is_lock = Column(Boolean, nullable=False, default=False)
    last_ip_login = Column(String(45), nullable=True)

    token_version = Column(BigInteger, nullable=False, default=0)

    date_registered = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    date_modified = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
