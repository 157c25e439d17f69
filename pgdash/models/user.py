from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Table, Text, func
from sqlalchemy.orm import relationship, validates
from pgdash.database import Base
from pgdash.models.permission import Permission
from pgdash.utils.clock import utcnow
import enum


class PasswordScheme(str, enum.Enum):
    """How User.password_hash is encoded."""

    bcrypt = "bcrypt"
    # Pre-migration rows holding the raw password; upgraded to bcrypt on first login
    legacy_plaintext = "legacy_plaintext"


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


# Role model
class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=False, default="#6B7280")
    is_system = Column(Boolean, nullable=False, default=False)
    implicit_superuser = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    permissions = relationship(
        Permission,
        secondary=role_permissions,
        lazy="selectin",
        order_by=Permission.code,
    )

    @validates("is_system")
    def _validate_is_system(self, key, value):
        if self.is_system and not value:
            raise ValueError("is_system cannot be cleared once set")
        return value

    @property
    def permission_codes(self) -> set[str]:
        return {p.code for p in self.permissions}


# Role names are unique regardless of case
Index("uq_roles_name_lower", func.lower(Role.__table__.c.name), unique=True)


# User model
class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    password_scheme = Column(String(32), nullable=False, default=PasswordScheme.bcrypt.value)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True, index=True)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    role = relationship("Role", lazy="joined")
    tenant = relationship("Tenant", lazy="joined")

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None


Index("uq_users_email_lower", func.lower(User.__table__.c.email), unique=True)
