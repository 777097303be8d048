import math


def paginate(query, page: int, limit: int):
    """Slice an ordered query into one page plus the pagination envelope.

    The query must carry a total ordering (ending on a unique column) so that
    consecutive pages never overlap.
    """
    total = query.order_by(None).count()
    total_pages = math.ceil(total / limit) if total else 0
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "currentPage": page,
        "totalPages": total_pages,
        "totalRecords": total,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search term matches literally (use with escape='\\\\')."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
