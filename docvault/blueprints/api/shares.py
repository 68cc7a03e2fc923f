"""
API v1 Routes: share links.

Owner endpoints issue, list and revoke grants. Visitor endpoints accept a
token in the query string and stream the document; every refusal is the
same opaque 403.
"""
from flask import request, jsonify

from docvault.blueprints.api import api_bp
from docvault.blueprints.api.decorators import jwt_optional, jwt_required
from docvault.blueprints.api.documents import stream_blob
from docvault.blueprints.api.helpers import api_success, share_link_origin
from docvault.blueprints.api.schemas import (
    AccessGrantSchema,
    EmailShareSchema,
    PrivateLinkSchema,
    SharedDocumentSchema,
)
from docvault.extensions import get_services, limiter
from docvault.models.access_grant import GrantKind


def _iso(value):
    return value.isoformat() + 'Z' if value else None


# ── Issuing (owner) ─────────────────────────────────────────

@api_bp.route('/documents/<int:document_id>/public-link', methods=['POST'])
@limiter.limit('30 per minute')
@jwt_required
def api_issue_public_link(document_id):
    """Create a public link valid for the configured TTL (60s by default)."""
    issued = get_services().issuer.issue_public(
        document_id, request.api_user.id, base_url=share_link_origin()
    )
    return api_success({'url': issued.url, 'expires_at': _iso(issued.expires_at)})


@api_bp.route('/documents/<int:document_id>/private-link', methods=['POST'])
@limiter.limit('30 per minute')
@jwt_required
def api_issue_private_link(document_id):
    """Create a link bound to one recipient user.

    Request body:
        {"user_id": 42}
    """
    data = PrivateLinkSchema().load(request.get_json(silent=True) or {})
    issued = get_services().issuer.issue_private(
        document_id, request.api_user.id, data['user_id'], base_url=share_link_origin()
    )
    return api_success({'url': issued.url})


@api_bp.route('/documents/<int:document_id>/share', methods=['POST'])
@limiter.limit('10 per minute')
@jwt_required
def api_share_via_email(document_id):
    """Email a short-lived signed link to a recipient.

    Request body:
        {"email": "someone@example.com"}
    """
    data = EmailShareSchema().load(request.get_json(silent=True) or {})
    issued = get_services().issuer.issue_emailed(
        document_id, request.api_user.id, data['email'], base_url=share_link_origin()
    )
    return jsonify({
        'data': {
            'message': 'Document shared successfully.',
            'expires_at': _iso(issued.expires_at),
        }
    }), 200


@api_bp.route('/documents/<int:document_id>/grants', methods=['GET'])
@jwt_required
def api_list_grants(document_id):
    """List every share grant of a document."""
    grants = get_services().issuer.list_grants(document_id, request.api_user.id)
    return api_success(AccessGrantSchema().dump(grants, many=True))


@api_bp.route('/documents/<int:document_id>/grants/<int:grant_id>', methods=['DELETE'])
@jwt_required
def api_revoke_grant(document_id, grant_id):
    """Revoke a share grant."""
    get_services().issuer.revoke(document_id, grant_id, request.api_user.id)
    return '', 204


# ── Access (visitor) ────────────────────────────────────────

@api_bp.route('/documents/<int:document_id>/public', methods=['GET'])
@limiter.limit('60 per minute')
def api_public_document(document_id):
    """Stream a document through a public link."""
    document = get_services().validator.validate(
        document_id, request.args.get('token', ''), GrantKind.PUBLIC
    )
    return stream_blob(document, as_attachment=False)


@api_bp.route('/documents/<int:document_id>/private', methods=['GET'])
@limiter.limit('60 per minute')
@jwt_optional
def api_private_document(document_id):
    """Stream a document through a private link.

    Works without login; a logged-in visitor must be the link's recipient.
    """
    user = request.api_user
    document = get_services().validator.validate(
        document_id,
        request.args.get('token', ''),
        GrantKind.PRIVATE,
        requester_id=user.id if user else None,
    )
    return stream_blob(document, as_attachment=False)


@api_bp.route('/documents/<int:document_id>/access', methods=['GET'])
@limiter.limit('60 per minute')
def api_emailed_document(document_id):
    """Stream a document through an emailed (signed) link."""
    document = get_services().validator.validate(
        document_id, request.args.get('token', ''), GrantKind.EMAILED
    )
    return stream_blob(document, as_attachment=False)


@api_bp.route('/documents/verify-token', methods=['GET'])
@limiter.limit('60 per minute')
def api_verify_token():
    """Check an emailed token and describe the document it opens."""
    document = get_services().validator.verify_emailed_token(request.args.get('token', ''))
    return api_success(SharedDocumentSchema().dump(document))
