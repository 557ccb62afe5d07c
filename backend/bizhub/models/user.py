"""
BizHub Ledger — User model.

Only the principal directory that actor / voided-by references point at.
Deleting a user clears those references (ON DELETE SET NULL) and never
touches the rows that hold them.
"""

from sqlalchemy import Column, Integer, String, DateTime, func

from bizhub.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)
    full_name = Column(String(200), default="")
    role = Column(String(20), default="staff")  # admin, manager, staff

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User {self.id} {self.username}>"
