from homexpert.extensions import db
from homexpert.models.base import TimestampMixin, new_id
from homexpert.security.permissions import flatten_permission

role_permissions = db.Table(
    "role_permissions",
    db.Column("role_id", db.String(36), db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    db.Column("permission_id", db.String(36), db.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(TimestampMixin, db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    module = db.Column(db.String(50), nullable=False, index=True)
    resource = db.Column(db.String(100), nullable=False)
    action = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(255))

    __table_args__ = (
        db.UniqueConstraint("module", "action", "resource", name="uq_permission_module_action_resource"),
    )

    @property
    def key(self):
        """Flattened ``module:action`` form used in tokens and checks."""
        return flatten_permission(self.module, self.action)

    @property
    def name(self):
        return f"{self.resource}.{self.action}"

    @property
    def is_all_access(self):
        return self.resource == "*" and self.action == "all"

    @classmethod
    def find_by_module(cls, module):
        return cls.query.filter_by(module=module).order_by(cls.action).all()

    def to_dict(self):
        return {
            "id": self.id,
            "module": self.module,
            "resource": self.resource,
            "action": self.action,
            "name": self.name,
            "key": self.key,
            "description": self.description,
        }

    def __repr__(self):
        return f"<Permission {self.key}>"
