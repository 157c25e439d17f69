from sqlalchemy import Column, Integer, String, Text
from pgdash.database import Base


class Permission(Base):
    """One grantable capability. Rows are synced from the deploy-time catalog."""

    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    # Presentation grouping only, never consulted by authorization
    category = Column(String(100), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Permission {self.code}>"
