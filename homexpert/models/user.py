from werkzeug.security import check_password_hash, generate_password_hash

from homexpert.extensions import db
from homexpert.models.base import TimestampMixin, new_id

USER_TYPES = ("employee", "vendor")


class User(TimestampMixin, db.Model):
    __tablename__ = "users"

    # ========== IDENTIFICATION ==========
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(20))
    password_hash = db.Column(db.String(255), nullable=False)

    # ========== ACCESS ==========
    user_type = db.Column(db.String(20), nullable=False, default="employee", index=True)
    role_id = db.Column(db.String(36), db.ForeignKey("roles.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login_at = db.Column(db.DateTime)

    role = db.relationship("Role", lazy="joined", backref=db.backref("users", lazy="dynamic"))

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def role_name(self):
        return self.role.name.lower() if self.role else None

    def permission_strings(self):
        """Union of the role's permissions as ``module:action`` strings."""
        if not self.role:
            return []
        return self.role.permission_keys()

    @classmethod
    def find_by_email(cls, email):
        return cls.query.filter_by(email=(email or "").strip().lower()).first()

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "userType": self.user_type,
            "role": self.role_name,
            "roleId": self.role_id,
            "isActive": self.is_active,
            "lastLoginAt": self.last_login_at.isoformat() if self.last_login_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.email}>"
