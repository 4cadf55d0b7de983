from homexpert.extensions import db
from homexpert.models.base import TimestampMixin, new_id


class Vendor(TimestampMixin, db.Model):
    __tablename__ = "vendors"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    business_name = db.Column(db.String(150), nullable=False)
    services = db.Column(db.JSON, nullable=False, default=list)
    address = db.Column(db.String(255))
    city = db.Column(db.String(100), index=True)
    state = db.Column(db.String(100))
    pincode = db.Column(db.String(10))
    is_verified = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    user = db.relationship(
        "User",
        lazy="joined",
        backref=db.backref("vendor", uselist=False, cascade="all, delete-orphan"),
    )

    def to_dict(self):
        user = self.user
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": user.name if user else None,
            "email": user.email if user else None,
            "phone": user.phone if user else None,
            "businessName": self.business_name,
            "services": list(self.services or []),
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "isVerified": self.is_verified,
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Vendor {self.business_name}>"
