from flask import Blueprint, current_app, jsonify, request

from homexpert.errors import PermissionDeniedError
from homexpert.extensions import get_permission_cache
from homexpert.security.permissions import PermissionCode
from homexpert.security.require_permission import require_permission
from homexpert.services.vendor_service import VendorService
from homexpert.utils.pagination import page_args, paginate_list
from homexpert.utils.validation import get_json_body, parse_bool

vendors_bp = Blueprint("admin_vendors", __name__, url_prefix="/api/admin/vendors")


@vendors_bp.route("", methods=["GET"])
@require_permission(PermissionCode.VENDORS_VIEW)
def list_vendors(auth):
    page, limit = page_args(request.args)
    vendors = VendorService.search(
        search=request.args.get("search"),
        city=request.args.get("city"),
        service=request.args.get("service"),
        is_active=request.args.get("isActive"),
        is_verified=request.args.get("isVerified"),
    )
    items, pagination = paginate_list(vendors, page, limit)
    return jsonify({
        "success": True,
        "data": {"vendors": [v.to_dict() for v in items], "pagination": pagination},
    }), 200


@vendors_bp.route("", methods=["POST"])
@require_permission(PermissionCode.VENDORS_CREATE)
def create_vendor(auth):
    vendor = VendorService.create(get_json_body(request), created_by=auth.user_id)
    return jsonify({"success": True, "message": "Vendor created successfully", "data": vendor.to_dict()}), 201


@vendors_bp.route("/<vendor_id>", methods=["GET"])
@require_permission(PermissionCode.VENDORS_VIEW)
def get_vendor(vendor_id, auth):
    return jsonify({"success": True, "data": VendorService.get(vendor_id).to_dict()}), 200


@vendors_bp.route("/<vendor_id>", methods=["PUT"])
@require_permission(PermissionCode.VENDORS_EDIT)
def update_vendor(vendor_id, auth):
    data = get_json_body(request)
    if "isActive" in data:
        # activation changes also need the matching permission
        needed = PermissionCode.VENDORS_ACTIVATE if parse_bool(data["isActive"]) else PermissionCode.VENDORS_DEACTIVATE
        if not auth.has_permission(needed):
            raise PermissionDeniedError(permission=needed.value)
    vendor = VendorService.update(vendor_id, data, cache=get_permission_cache(current_app))
    return jsonify({"success": True, "message": "Vendor updated successfully", "data": vendor.to_dict()}), 200


@vendors_bp.route("/<vendor_id>", methods=["DELETE"])
@require_permission(PermissionCode.VENDORS_DELETE)
def delete_vendor(vendor_id, auth):
    VendorService.delete(vendor_id)
    return jsonify({"success": True, "message": "Vendor deleted successfully"}), 200
