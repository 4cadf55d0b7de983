from homexpert.extensions import db
from homexpert.models.base import TimestampMixin, new_id
from homexpert.models.permission import role_permissions


class Role(TimestampMixin, db.Model):
    __tablename__ = "roles"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(50), unique=True, nullable=False, index=True)
    description = db.Column(db.String(255))
    is_system_role = db.Column(db.Boolean, default=False, nullable=False)

    permissions = db.relationship(
        "Permission",
        secondary=role_permissions,
        lazy="selectin",
        order_by="Permission.module",
    )

    @property
    def permission_count(self):
        return len(self.permissions)

    def has_permission(self, permission_id):
        return any(p.id == permission_id for p in self.permissions)

    def add_permission(self, permission):
        if not self.has_permission(permission.id):
            self.permissions.append(permission)

    def remove_permission(self, permission):
        self.permissions = [p for p in self.permissions if p.id != permission.id]

    def permission_keys(self):
        return sorted({p.key for p in self.permissions})

    @classmethod
    def find_by_name(cls, name):
        return cls.query.filter(db.func.lower(cls.name) == (name or "").lower()).first()

    def to_dict(self, expand_permissions=False):
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isSystemRole": self.is_system_role,
            "permissionCount": self.permission_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if expand_permissions:
            data["permissions"] = [p.to_dict() for p in self.permissions]
        else:
            data["permissions"] = [p.id for p in self.permissions]
        return data

    def __repr__(self):
        return f"<Role {self.name}>"
