"""
API helper functions: document list pagination, the JSON envelope and
share-link origins.
"""
from flask import current_app, jsonify, request, url_for

MAX_PER_PAGE = 100


def _page_link(page, per_page):
    # url_for keeps the endpoint's view args; other query args are dropped
    return url_for(request.endpoint, page=page, per_page=per_page, _external=True,
                   **(request.view_args or {}))


def paginate_documents(query, schema):
    """Page through an owner's documents.

    Query params:
        page (int): 1-indexed, clamped to at least 1
        per_page (int): defaults to ``ITEMS_PER_PAGE``, clamped to 1..100

    Returns:
        dict with ``data``, ``meta`` and ``links`` (first, last, self, and
        next/prev where they exist).
    """
    default_per_page = current_app.config.get('ITEMS_PER_PAGE', 20)
    page = max(1, request.args.get('page', 1, type=int))
    per_page = request.args.get('per_page', default_per_page, type=int)
    per_page = max(1, min(per_page, MAX_PER_PAGE))

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)
    last_page = pagination.pages or 1

    links = {
        'self': _page_link(page, per_page),
        'first': _page_link(1, per_page),
        'last': _page_link(last_page, per_page),
    }
    if pagination.has_next:
        links['next'] = _page_link(page + 1, per_page)
    if pagination.has_prev:
        links['prev'] = _page_link(page - 1, per_page)

    return {
        'data': schema.dump(pagination.items, many=True),
        'meta': {
            'total': pagination.total,
            'page': page,
            'per_page': per_page,
            'total_pages': last_page,
        },
        'links': links,
    }


def api_error(code, message, status=400, details=None):
    """Build the error envelope: ``{"error": {"code", "message"[, "details"]}}``."""
    body = {'code': code, 'message': message}
    if details:
        body['details'] = details
    return jsonify({'error': body}), status


def api_success(data, status=200):
    return jsonify({'data': data}), status


def share_link_origin():
    """Origin share URLs are built on: the host the owner called the API on."""
    return request.host_url.rstrip('/')
