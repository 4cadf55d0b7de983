from homexpert.domain.subscriptions import PaymentStatus, SubscriptionStatus
from homexpert.extensions import db
from homexpert.models import Lead, LeadStatus, SubscriptionHistory, User, Vendor
from homexpert.services.lead_service import LeadService
from homexpert.services.subscription_service import LOW_LEADS_THRESHOLD, SubscriptionService
from homexpert.utils.dates import isoformat


class DashboardService:

    @staticmethod
    def admin_stats():
        by_status = dict(
            db.session.query(Lead.status, db.func.count(Lead.id)).group_by(Lead.status).all()
        )
        revenue = db.session.query(db.func.coalesce(db.func.sum(SubscriptionHistory.payment_amount), 0)).filter(
            SubscriptionHistory.payment_status == PaymentStatus.COMPLETED.value
        ).scalar()
        return {
            "leads": {
                "total": sum(by_status.values()),
                "byStatus": {status: by_status.get(status, 0) for status in LeadStatus.values()},
            },
            "vendors": {
                "total": Vendor.query.count(),
                "active": Vendor.query.filter_by(is_active=True).count(),
                "verified": Vendor.query.filter_by(is_verified=True).count(),
            },
            "employees": User.query.filter_by(user_type="employee").count(),
            "subscriptions": {
                "active": SubscriptionHistory.query.filter_by(
                    status=SubscriptionStatus.ACTIVE.value, is_active=True
                ).count(),
                "total": SubscriptionHistory.query.count(),
            },
            "revenue": float(revenue or 0),
        }

    @staticmethod
    def vendor_dashboard(vendor, now=None):
        subscription = SubscriptionService.get_active_subscription(vendor.user_id, now)
        taken = LeadService.vendor_leads(vendor).all()
        available = LeadService.available_for_vendor(vendor) if subscription else []

        by_status = {}
        for lead in taken:
            by_status[lead.status] = by_status.get(lead.status, 0) + 1
        converted = by_status.get(LeadStatus.COMPLETED.value, 0) + by_status.get(LeadStatus.CONVERTED.value, 0)

        alerts = []
        if subscription is None:
            alerts.append({
                "type": "no_subscription",
                "message": "You do not have an active subscription. Purchase a plan to receive leads.",
            })
        else:
            if subscription.leads_remaining <= LOW_LEADS_THRESHOLD:
                alerts.append({
                    "type": "low_leads",
                    "message": f"Only {subscription.leads_remaining} leads remaining in your subscription.",
                })
            if subscription.is_expiring_soon(now):
                alerts.append({
                    "type": "expiring_soon",
                    "message": f"Your subscription expires in {subscription.days_remaining(now)} days.",
                })

        return {
            "vendor": vendor.to_dict(),
            "subscription": subscription.to_dict(now, include_logs=False) if subscription else None,
            "leads": {
                "taken": len(taken),
                "available": len(available),
                "byStatus": by_status,
                "conversionRate": round(converted / len(taken) * 100) if taken else 0,
                "recent": [
                    {"id": lead.id, "service": lead.service, "status": lead.status, "takenAt": isoformat(lead.taken_at)}
                    for lead in taken[:5]
                ],
            },
            "alerts": alerts,
        }
