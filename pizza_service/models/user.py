import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from pizza_service.core.database import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    DINER = "diner"
    FRANCHISEE = "franchisee"


class User(Base):
    __tablename__ = "users"
    # ids are never reused, a revocation generation may outlive its user
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    roles = relationship(
        "RoleGrant",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="RoleGrant.id",
    )

    def has_role(self, role: Role, scope_id: int | None = None) -> bool:
        for grant in self.roles:
            if grant.role != role.value:
                continue
            if scope_id is None or int(grant.scope_id) == int(scope_id):
                return True
        return False


class RoleGrant(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", "scope_id", name="uq_user_roles_grant"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    role = Column(String, nullable=False)
    # 0 for global roles, franchise id for franchisee
    scope_id = Column(Integer, nullable=False, default=0, index=True)

    user = relationship("User", back_populates="roles")
