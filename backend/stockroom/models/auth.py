from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

ROLE_SUPERADMIN = "superadmin"
ROLE_ADMIN = "admin"
ROLE_DRIVER = "driver"
ROLES = (ROLE_SUPERADMIN, ROLE_ADMIN, ROLE_DRIVER)


class User(db.Model):
    """
    User accounts for authentication and attribution.

    role drives inventory scope: superadmin sees every inventory, admin sees
    the inventories listed in Manages, every other role sees none.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    fullname = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=ROLE_DRIVER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fullname": self.fullname,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "lastLoginAt": to_utc_z(self.last_login_at),
        }


class Manages(db.Model):
    """Assignment of an admin user to an inventory they may operate on."""
    __tablename__ = "manages"
    __table_args__ = (
        db.UniqueConstraint("user_id", "inventory_id", name="uq_manages_user_inventory"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("managed_inventories", lazy=True))
    inventory = db.relationship("Inventory", backref=db.backref("managers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "inventoryId": self.inventory_id,
            "user": {"id": self.user.id, "fullname": self.user.fullname, "role": self.user.role} if self.user else None,
            "inventory": self.inventory.to_dict() if self.inventory else None,
        }


class SessionToken(db.Model):
    """
    Opaque bearer tokens. Only the SHA-256 hash is stored.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User")
