"""
API v1 Routes: document upload, update, listing, revisions and download
for the document owner.
"""
from flask import request, jsonify, Response, url_for

from docvault.blueprints.api import api_bp
from docvault.blueprints.api.decorators import jwt_required
from docvault.blueprints.api.helpers import api_error, api_success, paginate_documents
from docvault.blueprints.api.schemas import (
    DocumentCreateSchema,
    DocumentSchema,
    DocumentUpdateSchema,
    RevisionSchema,
)
from docvault.extensions import get_services
from docvault.models.document import Document
from docvault.services.revisions import DocumentPatch
from docvault.utils.storage import BlobNotFound


def _store_upload(upload):
    """Save an uploaded file; returns the locator and the file metadata."""
    blob_store = get_services().blob_store
    data = upload.read()
    locator = blob_store.save(data, upload.filename)
    return locator, {
        'original_filename': upload.filename,
        'mime_type': blob_store.guess_mime_type(upload.filename),
        'file_size': len(data),
    }


def _if_match_version():
    """Parse an ``If-Match: "<version>"`` header, if present."""
    header = (request.headers.get('If-Match') or '').strip()
    if header.startswith('W/'):
        header = header[2:]
    try:
        return int(header.strip('"'))
    except ValueError:
        return None


def stream_blob(document, as_attachment=True):
    """Stream a document's file without loading it into memory."""
    try:
        chunks = get_services().blob_store.open_read_stream(document.blob_locator)
    except BlobNotFound:
        return api_error('not_found', 'Document file not found.', 404)

    disposition = 'attachment' if as_attachment else 'inline'
    filename = document.original_filename or f'document-{document.id}'
    headers = {
        'Content-Disposition': f'{disposition}; filename="{filename}"',
        'Cache-Control': 'no-store',
    }
    if document.file_size:
        headers['Content-Length'] = str(document.file_size)
    return Response(chunks, mimetype=document.mime_type or 'application/octet-stream', headers=headers)


# ── Documents ───────────────────────────────────────────────

@api_bp.route('/documents', methods=['POST'])
@jwt_required
def api_upload_document():
    """Upload a new document (multipart: file + title, content, description)."""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return api_error('validation_error', 'A file is required.', 422,
                         [{'field': 'file', 'message': 'file is required.', 'code': 'required'}])

    fields = DocumentCreateSchema().load(request.form.to_dict())
    locator, file_meta = _store_upload(upload)

    services = get_services()
    try:
        document = services.revisions.create_document(
            owner_id=request.api_user.id,
            blob_locator=locator,
            **fields,
            **file_meta,
        )
    except Exception:
        services.blob_store.delete(locator)
        raise

    return api_success(DocumentSchema().dump(document), 201)


@api_bp.route('/documents', methods=['GET'])
@jwt_required
def api_list_documents():
    """List the current user's documents, most recently updated first."""
    query = Document.for_owner(request.api_user.id)
    return jsonify(paginate_documents(query, DocumentSchema())), 200


@api_bp.route('/documents/<int:document_id>', methods=['GET'])
@jwt_required
def api_get_document(document_id):
    """Get a single document owned by the current user."""
    document = get_services().revisions.get_owned_document(document_id, request.api_user.id)
    response, status = api_success(DocumentSchema().dump(document))
    response.headers['ETag'] = f'"{document.current_version}"'
    return response, status


@api_bp.route('/documents/<int:document_id>', methods=['PUT', 'PATCH'])
@jwt_required
def api_update_document(document_id):
    """Update a document's fields and optionally replace its file.

    Accepts JSON, or multipart with a ``file`` part. A changed description
    stores the previous state as a new revision. Send ``expected_version``
    (or ``If-Match``) to have the update rejected with 409 if the document
    moved on since it was read.
    """
    upload = request.files.get('file')
    if upload is not None and upload.filename:
        payload = request.form.to_dict()
    else:
        upload = None
        payload = request.get_json(silent=True) or {}

    fields = DocumentUpdateSchema().load(payload)
    if 'expected_version' not in fields:
        fields['expected_version'] = _if_match_version()

    services = get_services()
    # Fail fast before storing a new blob
    services.revisions.get_owned_document(document_id, request.api_user.id)

    locator = None
    if upload is not None:
        locator, file_meta = _store_upload(upload)
        fields.update(file_meta)

    try:
        document = services.revisions.apply_update(
            document_id,
            request.api_user.id,
            DocumentPatch(blob_locator=locator, **fields),
        )
    except Exception:
        if locator:
            services.blob_store.delete(locator)
        raise

    response, status = api_success(DocumentSchema().dump(document))
    response.headers['ETag'] = f'"{document.current_version}"'
    return response, status


@api_bp.route('/documents/<int:document_id>', methods=['DELETE'])
@jwt_required
def api_delete_document(document_id):
    """Delete a document, its revisions and its share links."""
    get_services().revisions.delete_document(document_id, request.api_user.id)
    return '', 204


@api_bp.route('/documents/<int:document_id>/file', methods=['GET'])
@jwt_required
def api_download_document(document_id):
    """Stream the document file to its owner."""
    document = get_services().revisions.get_owned_document(document_id, request.api_user.id)
    return stream_blob(document)


@api_bp.route('/documents/<int:document_id>/url', methods=['GET'])
@jwt_required
def api_document_url(document_id):
    """Return the owner download URL of a document."""
    get_services().revisions.get_owned_document(document_id, request.api_user.id)
    return api_success({
        'url': url_for('api.api_download_document', document_id=document_id, _external=True),
    })


# ── Revisions ───────────────────────────────────────────────

@api_bp.route('/documents/<int:document_id>/revisions', methods=['GET'])
@jwt_required
def api_list_revisions(document_id):
    """List the revision chain of a document, newest first."""
    revisions = get_services().revisions.list_revisions(document_id, request.api_user.id)
    return api_success(RevisionSchema().dump(revisions, many=True))


@api_bp.route('/documents/<int:document_id>/revisions/<int:version>', methods=['GET'])
@jwt_required
def api_get_revision(document_id, version):
    """Get one revision of a document."""
    revision = get_services().revisions.get_revision(document_id, version, request.api_user.id)
    return api_success(RevisionSchema().dump(revision))
