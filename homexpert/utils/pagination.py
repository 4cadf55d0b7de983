from homexpert.errors import ValidationError

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def page_args(args, default_limit=DEFAULT_PAGE_SIZE):
    """Read ``page`` and ``limit`` query parameters."""
    try:
        page = int(args.get("page", 1))
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return page, min(limit, MAX_PAGE_SIZE)


def pagination_meta(page, limit, total):
    total_pages = (total + limit - 1) // limit if total else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalCount": total,
        "limit": limit,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def paginate_query(query, page, limit):
    """Return ``(items, meta)`` for a SQLAlchemy query."""
    result = query.paginate(page=page, per_page=limit, error_out=False)
    return result.items, pagination_meta(page, limit, result.total)


def paginate_list(items, page, limit):
    start = (page - 1) * limit
    return items[start:start + limit], pagination_meta(page, limit, len(items))
