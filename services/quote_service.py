"""
Quote Service - form validation and data access for quotes and their materials

Tables (see migrations/001_quotes.sql):
- profiles: one row per provider, required by the quotes.user_id foreign key
- quotes: one price estimate per row, owned by user_id
- quote_material_items: optional bill of materials, ordered by sort_order

Every function takes the Supabase client explicitly. Callers pass the client
from their AuthContext, which is bound to the signed-in user, so row-level
security applies on top of the explicit owner predicates used here.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Iterable, Tuple

from supabase import Client

from services.formatting import parse_money_to_cents

logger = logging.getLogger(__name__)


QUOTE_CATEGORIES = [
    "Serviços de Pintura",
    "Serviços Elétricos",
    "Serviços Hidráulicos",
    "Serviços de Piso",
    "Serviços Gerais",
]

DEFAULT_DISPLAY_NAME = "Prestador"

QUOTE_COLUMNS = "id, user_id, category_name_snapshot, service_description, labor_value_cents, needs_material, created_at"
MATERIAL_COLUMNS = "id, quote_id, description, quantity, sort_order"

# Version 1-5, RFC 4122 variant
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


# =============================================================================
# ERRORS
# =============================================================================

class QuoteValidationError(ValueError):
    """Form input rejected before any database call; message is user-facing"""


class NotAuthenticatedError(Exception):
    """Write attempted without a signed-in user"""

    def __init__(self, message: str = "Usuário não autenticado"):
        super().__init__(message)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class MaterialItem:
    """
    One line of a quote's bill of materials.

    Maps to quote_material_items table. quantity is free text ("2 latas").
    """
    id: str
    quote_id: str
    description: str
    quantity: Optional[str] = None
    sort_order: int = 0


@dataclass
class Quote:
    """
    A service price estimate.

    Maps to quotes table. category_name is a snapshot of the label chosen at
    creation time, not a reference to a category catalog.
    """
    id: str
    owner_id: str
    category_name: Optional[str] = None
    service_description: Optional[str] = None
    labor_value_cents: int = 0
    needs_material: bool = False
    created_at: Optional[str] = None


@dataclass
class MaterialInput:
    """Material row as typed in the form, before it has an id"""
    description: str
    quantity: Optional[str] = None
    sort_order: int = 0


@dataclass
class QuoteDraft:
    """Validated, normalized form input ready to be saved"""
    category_name: str
    service_description: Optional[str]
    labor_value_cents: int
    needs_material: bool
    materials: List[MaterialInput] = field(default_factory=list)


def _parse_quote(data: dict) -> Quote:
    """Parse database row into Quote object."""
    return Quote(
        id=data["id"],
        owner_id=data.get("user_id"),
        category_name=data.get("category_name_snapshot"),
        service_description=data.get("service_description"),
        labor_value_cents=data.get("labor_value_cents") or 0,
        needs_material=bool(data.get("needs_material")),
        created_at=data.get("created_at"),
    )


def _parse_material(data: dict) -> MaterialItem:
    """Parse database row into MaterialItem object."""
    return MaterialItem(
        id=data.get("id"),
        quote_id=data.get("quote_id"),
        description=data.get("description") or "",
        quantity=data.get("quantity"),
        sort_order=data.get("sort_order") or 0,
    )


# =============================================================================
# VALIDATION
# =============================================================================

def is_valid_quote_id(value: Optional[str]) -> bool:
    """Check that value is a canonical version 1-5 UUID string."""
    return bool(value) and bool(_UUID_RE.match(value))


def build_quote_draft(
    category: str,
    description: Optional[str],
    labor_value: Optional[str],
    needs_material: bool,
    material_rows: Iterable[Tuple[Optional[str], Optional[str]]] = (),
) -> QuoteDraft:
    """
    Validate and normalize quote form input.

    Args:
        category: One of QUOTE_CATEGORIES
        description: Free text, may be empty
        labor_value: Price as typed ("2850", "2850,00", "2.850,00")
        needs_material: Whether the materials section applies
        material_rows: (description, quantity) pairs in display order

    Returns:
        QuoteDraft with labor value in centavos and materials numbered 0..n-1

    Raises:
        QuoteValidationError: with a message to show in the form
    """
    if category not in QUOTE_CATEGORIES:
        raise QuoteValidationError("Selecione uma categoria válida.")

    if not (labor_value or "").strip():
        raise QuoteValidationError("Informe o valor da mão de obra.")

    cents = parse_money_to_cents(labor_value)
    if cents is None:
        raise QuoteValidationError("Valor da mão de obra inválido. Use, por exemplo, 2850 ou 2850,00.")

    materials = []
    if needs_material:
        for row_description, row_quantity in material_rows:
            row_description = (row_description or "").strip()
            row_quantity = (row_quantity or "").strip()
            if not row_description and not row_quantity:
                continue
            if not row_description:
                raise QuoteValidationError("Informe a descrição de cada material.")
            materials.append(MaterialInput(
                description=row_description,
                quantity=row_quantity or None,
                sort_order=len(materials),
            ))

    return QuoteDraft(
        category_name=category,
        service_description=(description or "").strip() or None,
        labor_value_cents=cents,
        needs_material=bool(needs_material),
        materials=materials,
    )


# =============================================================================
# WRITE OPERATIONS
# =============================================================================

def ensure_profile(client: Client, user_id: str, email: Optional[str] = None) -> None:
    """
    Make sure a profiles row exists for the user.

    Idempotent: upsert keyed on profiles.id, so repeated calls keep one row.
    """
    display_name = email.split("@")[0] if email else DEFAULT_DISPLAY_NAME
    client.table("profiles") \
        .upsert({"id": user_id, "display_name": display_name or DEFAULT_DISPLAY_NAME}, on_conflict="id") \
        .execute()


def create_quote(client: Client, owner_id: str, draft: QuoteDraft) -> Quote:
    """
    Insert a quote and its materials in one transaction.

    Runs the create_quote_with_materials database function, which inserts the
    quote for auth.uid() and then its material rows; either both are stored
    or neither is.
    """
    materials = [
        {"description": m.description, "quantity": m.quantity, "sort_order": m.sort_order}
        for m in draft.materials
    ] if draft.needs_material else []

    result = client.rpc("create_quote_with_materials", {
        "p_category_name": draft.category_name,
        "p_service_description": draft.service_description,
        "p_labor_value_cents": draft.labor_value_cents,
        "p_needs_material": draft.needs_material,
        "p_materials": materials,
    }).execute()

    rows = result.data if isinstance(result.data, list) else [result.data]
    row = rows[0] if rows else None
    if not row:
        raise RuntimeError("Falha ao salvar o orçamento: nenhuma linha retornada.")

    quote = _parse_quote(row)

    logger.info(f"Quote {quote.id} created by {owner_id} with {len(materials)} material(s)")
    return quote


def save_quote(auth, draft: QuoteDraft) -> Quote:
    """
    Save a validated quote for the signed-in user.

    Args:
        auth: AuthContext of the caller (None when not signed in)
        draft: Output of build_quote_draft

    Raises:
        NotAuthenticatedError: no signed-in user
    """
    if auth is None or not auth.user_id:
        raise NotAuthenticatedError()

    ensure_profile(auth.client, auth.user_id, auth.email)
    return create_quote(auth.client, auth.user_id, draft)


# =============================================================================
# READ OPERATIONS
# =============================================================================

def list_quotes(client: Client, owner_id: str) -> List[Quote]:
    """Get all quotes owned by owner_id, most recent first."""
    result = client.table("quotes") \
        .select(QUOTE_COLUMNS) \
        .eq("user_id", owner_id) \
        .order("created_at", desc=True) \
        .execute()

    return [_parse_quote(row) for row in result.data or []]


def get_quote(client: Client, quote_id: str, owner_id: str) -> Optional[Quote]:
    """
    Get one quote by id, scoped to its owner.

    Returns None for malformed ids, missing rows and rows owned by someone
    else, so callers cannot tell those cases apart.
    """
    if not is_valid_quote_id(quote_id):
        return None

    result = client.table("quotes") \
        .select(QUOTE_COLUMNS) \
        .eq("id", quote_id) \
        .eq("user_id", owner_id) \
        .limit(1) \
        .execute()

    if not result.data:
        return None
    return _parse_quote(result.data[0])


def get_quote_materials(client: Client, quote_id: str) -> List[MaterialItem]:
    """Get material items of a quote in sort_order."""
    result = client.table("quote_material_items") \
        .select(MATERIAL_COLUMNS) \
        .eq("quote_id", quote_id) \
        .order("sort_order") \
        .execute()

    return [_parse_material(row) for row in result.data or []]

