"""
Orçamentos Services

Supabase client factory and per-request auth.
Quote form validation and owner-scoped data access.
pt-BR money/date formatting and the printable quote document.
"""

from .database import Settings, get_settings, create_supabase_client
from .auth_service import (
    AuthContext,
    sign_in,
    sign_out,
    resolve_auth,
    clear_auth,
    safe_next_path,
)
from .formatting import (
    parse_money_to_cents,
    format_brl_from_cents,
    format_date_br,
    truncate_text,
)
from .quote_service import (
    # Data classes
    Quote,
    MaterialItem,
    MaterialInput,
    QuoteDraft,
    # Errors
    QuoteValidationError,
    NotAuthenticatedError,
    # Validation
    QUOTE_CATEGORIES,
    is_valid_quote_id,
    build_quote_draft,
    # Write operations
    ensure_profile,
    create_quote,
    save_quote,
    # Read operations
    list_quotes,
    get_quote,
    get_quote_materials,
)
from .quote_document import render_quote_document, document_filename
