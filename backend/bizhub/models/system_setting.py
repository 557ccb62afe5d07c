"""
BizHub Ledger — System settings model.

Key/value rows with a declared ``setting_type`` (string, number, boolean,
json).  Read once at startup into a ``SettingsSnapshot``; nothing queries
this table per request.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, func

from bizhub.database import Base


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    setting_key = Column(String(100), unique=True, nullable=False)
    setting_value = Column(Text, nullable=True)
    setting_type = Column(String(50), nullable=False, default="string")  # string, number, boolean, json
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<SystemSetting {self.setting_key}={self.setting_value!r}>"
