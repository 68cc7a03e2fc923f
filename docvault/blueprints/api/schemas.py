"""
Marshmallow schemas for API serialization.
Dump schemas turn models into JSON-safe dicts; load schemas validate
request bodies before they reach the services.
"""
from marshmallow import Schema, fields, validate, EXCLUDE


class BaseSchema(Schema):
    """Base schema with common config."""
    class Meta:
        ordered = True
        unknown = EXCLUDE


# ── User ────────────────────────────────────────────────────

class UserSchema(BaseSchema):
    """User representation (for /me endpoint)."""
    id = fields.Int(dump_only=True)
    email = fields.Email()
    first_name = fields.Str()
    last_name = fields.Str()
    full_name = fields.Str(dump_only=True)
    is_active = fields.Bool()
    created_at = fields.DateTime(format='iso')


class LoginSchema(BaseSchema):
    email = fields.Email(required=True)
    password = fields.Str(required=True, validate=validate.Length(min=1))


class RefreshSchema(BaseSchema):
    refresh_token = fields.Str(required=True)


# ── Document ────────────────────────────────────────────────

class DocumentSchema(BaseSchema):
    """Document representation."""
    id = fields.Int(dump_only=True)
    owner_id = fields.Int(dump_only=True)
    title = fields.Str()
    content = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    original_filename = fields.Str(allow_none=True)
    mime_type = fields.Str(allow_none=True)
    file_size = fields.Int(allow_none=True)
    file_size_formatted = fields.Str(dump_only=True)
    current_version = fields.Int(dump_only=True)
    created_at = fields.DateTime(format='iso')
    updated_at = fields.DateTime(format='iso')


class SharedDocumentSchema(BaseSchema):
    """What a visitor holding a share token may see about a document."""
    id = fields.Int(dump_only=True)
    title = fields.Str()
    description = fields.Str(allow_none=True)
    created_at = fields.DateTime(format='iso')


class DocumentCreateSchema(BaseSchema):
    """Form fields accompanying an upload."""
    title = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    content = fields.Str(load_default=None)
    description = fields.Str(load_default=None)


class DocumentUpdateSchema(BaseSchema):
    """Partial update. Omitted fields are left unchanged."""
    title = fields.Str(validate=validate.Length(min=1, max=255))
    content = fields.Str()
    description = fields.Str()
    expected_version = fields.Int(validate=validate.Range(min=0))


# ── Revision ────────────────────────────────────────────────

class RevisionSchema(BaseSchema):
    """Revision snapshot representation."""
    id = fields.Int(dump_only=True)
    document_id = fields.Int(dump_only=True)
    version = fields.Int(dump_only=True)
    title = fields.Str()
    content = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    created_at = fields.DateTime(format='iso')


# ── Access grants ───────────────────────────────────────────

class AccessGrantSchema(BaseSchema):
    """Grant representation for the owner. Tokens are never echoed back."""
    id = fields.Int(dump_only=True)
    document_id = fields.Int(dump_only=True)
    kind = fields.Method('get_kind')
    bound_user_id = fields.Int(allow_none=True)
    recipient_email = fields.Str(allow_none=True)
    issued_at = fields.DateTime(format='iso')
    expires_at = fields.DateTime(format='iso', allow_none=True)
    consumed_at = fields.DateTime(format='iso', allow_none=True)

    def get_kind(self, obj):
        return obj.kind.value if obj.kind else None


class PrivateLinkSchema(BaseSchema):
    user_id = fields.Int(required=True)


class EmailShareSchema(BaseSchema):
    email = fields.Email(required=True)
