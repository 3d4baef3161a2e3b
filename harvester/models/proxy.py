"""ProxyPool model — egress identities handed out to harvest workers."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class ProxyPool(SQLModel, table=True):
    __tablename__ = "proxy_pool"

    id: int | None = Field(default=None, primary_key=True)
    host: str = Field(max_length=255)
    port: str = Field(max_length=10)
    username: str = ""
    password: str = ""
    status: int = 1  # 1 = enabled, 0 = disabled
    remark: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
