from flask import current_app


def paginate(query, page=1, per_page=None):
    """Return (items, pagination dict) for a Flask-SQLAlchemy query."""
    per_page = per_page or current_app.config.get('DEFAULT_PAGE_SIZE', 20)
    page = max(int(page or 1), 1)

    result = query.paginate(page=page, per_page=per_page, error_out=False)

    return result.items, {
        'page': result.page,
        'limit': result.per_page,
        'total': result.total,
        'pages': result.pages,
    }
