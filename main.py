"""
Orçamentos - FastHTML + Supabase

Quote drafting for independent service providers.
Run with: python main.py
"""

from fasthtml.common import *
from starlette.responses import JSONResponse, Response, HTMLResponse
from postgrest.exceptions import APIError
from supabase import AuthError
from urllib.parse import quote as url_quote, urlsplit
import logging
import os
from dotenv import load_dotenv

load_dotenv()

from services.database import get_settings
from services.auth_service import resolve_auth, sign_in, sign_out, safe_next_path
from services.formatting import format_brl_from_cents, format_date_br, truncate_text
from services.quote_service import (
    QUOTE_CATEGORIES,
    QuoteValidationError,
    NotAuthenticatedError,
    build_quote_draft,
    save_quote,
    list_quotes,
    get_quote,
    get_quote_materials,
    is_valid_quote_id,
)
from services.quote_document import render_quote_document, document_filename, DOCUMENT_MEDIA_TYPE

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Fail at startup when Supabase is not configured
settings = get_settings()

# ============================================================================
# APP SETUP
# ============================================================================

app, rt = fast_app(
    secret_key=os.getenv("APP_SECRET", "dev-secret-change-in-production"),
    live=os.getenv("APP_LIVE_RELOAD") == "1",
)

# ============================================================================
# STYLES
# ============================================================================

APP_STYLES = """
* { box-sizing: border-box; }
body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; margin: 0; padding: 0; background: #f5f5f5; color: #333; line-height: 1.6; }
nav { background: #111827; color: white; padding: 1rem 0; }
nav .nav-container { max-width: 760px; margin: 0 auto; padding: 0 1rem; display: flex; justify-content: space-between; align-items: center; }
nav ul { list-style: none; margin: 0; padding: 0; display: flex; gap: 1.5rem; align-items: center; }
nav a { color: #c7d2fe; text-decoration: none; }
nav a:hover { color: white; }
nav strong { color: white; font-size: 1.2rem; }
h1, h2, h3 { color: #111827; margin-top: 0; }
a { color: #4a4aff; }
input, select, button, textarea { padding: 0.5rem; font-size: 1rem; border: 1px solid #ddd; border-radius: 4px; }
input:focus, select:focus, textarea:focus { outline: 2px solid #4a4aff; border-color: #4a4aff; }
button, a[role=button] { background: #111827; color: white; border: none; cursor: pointer; padding: 0.75rem 1.5rem; border-radius: 4px; text-decoration: none; display: inline-block; }
button.secondary, a[role=button].secondary { background: #6c757d; }
button:disabled { opacity: 0.6; cursor: not-allowed; }
label { display: block; margin-bottom: 1rem; font-weight: 500; }
label input, label select, label textarea { margin-top: 0.25rem; width: 100%; }
label.checkbox { display: flex; align-items: center; gap: 0.5rem; }
label.checkbox input { width: auto; margin: 0; }
.container { max-width: 760px; margin: 0 auto; padding: 1rem; }
.card { background: white; padding: 1.5rem; border-radius: 8px; margin-bottom: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.1); }
.page-header { display: flex; justify-content: space-between; align-items: center; gap: 1rem; }
.muted { color: #6b7280; font-size: 0.875rem; }
.alert { padding: 1rem; border-radius: 4px; margin-bottom: 1rem; }
.alert-error { background: #f8d7da; color: #721c24; }
.alert-info { background: #cce5ff; color: #004085; }
.form-actions { display: flex; gap: 1rem; margin-top: 1rem; }
.quote-row { display: flex; justify-content: space-between; gap: 1rem; color: inherit; text-decoration: none; }
.quote-row:hover { background: #f8f9fa; }
.quote-value { font-weight: 600; white-space: nowrap; }
.material-row { display: grid; grid-template-columns: 7fr 4fr auto; gap: 0.5rem; margin-bottom: 0.5rem; }
.material-list { padding-left: 1.25rem; }
.actions { display: grid; grid-template-columns: 1fr 1fr; gap: 0.5rem; }
.description { white-space: pre-wrap; }
@media (max-width: 600px) { .material-row, .actions { grid-template-columns: 1fr; } }
"""

# ============================================================================
# LAYOUT HELPERS
# ============================================================================

def nav_bar(session):
    """Navigation bar component"""
    user = session.get("user")
    if user:
        return Nav(
            Div(
                Ul(Li(Strong("Orçamentos"))),
                Ul(
                    Li(A("Meus orçamentos", href="/quotes")),
                    Li(A("Novo orçamento", href="/quotes/new")),
                    Li(A(f"Sair ({user.get('email', '')})", href="/logout")),
                ),
                cls="nav-container"
            )
        )
    return Nav(
        Div(
            Ul(Li(Strong("Orçamentos"))),
            Ul(Li(A("Entrar", href="/login"))),
            cls="nav-container"
        )
    )


def page_layout(title, *content, session=None):
    """Standard page layout wrapper"""
    return Html(
        Head(
            Title(f"{title} - Orçamentos"),
            Meta(charset="utf-8"),
            Meta(name="viewport", content="width=device-width, initial-scale=1"),
            Style(APP_STYLES),
            # HTMX
            Script(src="https://unpkg.com/htmx.org@1.9.10")
        ),
        Body(
            nav_bar(session or {}),
            Main(Div(*content, cls="container"))
        ),
        lang="pt-BR"
    )


def login_redirect(req):
    """Send an anonymous caller to the login page, remembering where they were going"""
    if req.headers.get("HX-Request"):
        # Fragment requests redirect the page that issued them
        target = urlsplit(req.headers.get("HX-Current-URL", "")).path or "/quotes"
        return Response("", headers={"HX-Redirect": f"/login?next={url_quote(target, safe='/')}"})

    target = req.url.path
    if req.url.query:
        target = f"{target}?{req.url.query}"
    return RedirectResponse(f"/login?next={url_quote(target, safe='/')}", status_code=303)


def load_error_page(message, session):
    """Upstream failure while loading one quote"""
    return HTMLResponse(to_xml(page_layout("Erro",
        Div(
            A("← Voltar", href="/quotes"),
            P(Strong("Erro ao carregar o orçamento"), style="margin-top: 1rem;"),
            P(message, cls="muted"),
            cls="card"
        ),
        session=session
    )), status_code=502)


def not_found_page(session):
    return HTMLResponse(to_xml(page_layout("Não encontrado",
        Div(
            A("← Voltar", href="/quotes"),
            P("Orçamento não encontrado.", style="margin-top: 1rem;"),
            cls="card"
        ),
        session=session
    )), status_code=404)


# ============================================================================
# AUTH ROUTES
# ============================================================================

def login_form(email="", redirect_to="/quotes", error=None):
    return Div(
        Div(error, cls="alert alert-error") if error else None,
        H1("Entrar"),
        Form(
            Label("Email", Input(name="email", type="email", value=email, placeholder="voce@email.com",
                                 autocomplete="email", required=True)),
            Label("Senha", Input(name="password", type="password", autocomplete="current-password", required=True)),
            Input(type="hidden", name="redirect_to", value=redirect_to),
            Button("Entrar", type="submit"),
            method="post",
            action="/login"
        ),
        cls="card", style="max-width: 420px; margin: 2rem auto;"
    )


@rt("/")
def get(session):
    if session.get("access_token"):
        return RedirectResponse("/quotes", status_code=303)
    return RedirectResponse("/login", status_code=303)


@rt("/login")
def get(req, session):
    next_path = safe_next_path(req.query_params.get("next"))

    if resolve_auth(session):
        return RedirectResponse(next_path, status_code=303)

    return page_layout("Entrar", login_form(redirect_to=next_path), session=session)


@rt("/login")
def post(email: str, password: str, session, redirect_to: str = ""):
    """Authenticate with Supabase"""
    next_path = safe_next_path(redirect_to)
    try:
        sign_in(session, email, password)
        return RedirectResponse(next_path, status_code=303)

    except AuthError as e:
        error_msg = str(e)
        if "Invalid login credentials" in error_msg:
            error_msg = "Email ou senha inválidos"
        logger.info(f"Sign in failed for {email}: {e}")
    except Exception as e:
        logger.error(f"Unexpected sign in error for {email}: {e}")
        error_msg = str(e)

    return page_layout("Entrar",
        login_form(email=email, redirect_to=next_path, error=error_msg),
        session=session
    )


@rt("/logout")
def get(session):
    sign_out(session, resolve_auth(session))
    return RedirectResponse("/login", status_code=303)


# ============================================================================
# QUOTES LIST
# ============================================================================

def quote_list_item(quote):
    """One quote in the list, linking to its detail page"""
    title = quote.category_name or "Sem categoria"
    description = truncate_text(quote.service_description, 90)
    return A(
        Div(
            Strong(title),
            P(description, style="margin: 0.25rem 0 0;") if description else None,
            Div(f"Criado em {format_date_br(quote.created_at)}", cls="muted"),
        ),
        Div(format_brl_from_cents(quote.labor_value_cents), cls="quote-value"),
        href=f"/quotes/{quote.id}",
        cls="card quote-row"
    )


def quote_list_error(message):
    return Div(
        Div(
            P(Strong("Erro ao carregar"), style="margin: 0;"),
            P(message, cls="muted"),
            Button("Tentar novamente", type="button", cls="secondary",
                   hx_get="/quotes/fragment", hx_target="#quote-list", hx_swap="outerHTML"),
            cls="card"
        ),
        id="quote-list"
    )


@rt("/quotes")
def get(req, session):
    auth = resolve_auth(session)
    if auth is None:
        return login_redirect(req)

    return page_layout("Orçamentos",
        Div(
            Div(
                H1("Orçamentos", style="margin-bottom: 0;"),
                P("Seus orçamentos salvos", cls="muted"),
            ),
            A("Novo orçamento", href="/quotes/new", role="button"),
            cls="page-header"
        ),
        Div(
            Div("Carregando...", cls="card muted"),
            id="quote-list",
            hx_get="/quotes/fragment",
            hx_trigger="load",
            hx_swap="outerHTML"
        ),
        session=session
    )


@rt("/quotes/fragment")
def get(req, session):
    """Quote list body for HTMX: populated, empty or error state"""
    auth = resolve_auth(session)
    if auth is None:
        return login_redirect(req)

    try:
        quotes = list_quotes(auth.client, auth.user_id)
    except Exception as e:
        logger.error(f"Failed to load quotes for {auth.user_id}: {e}")
        return quote_list_error(str(e))

    if not quotes:
        return Div(
            Div(
                P("Você ainda não criou nenhum orçamento.", cls="muted"),
                A("Criar primeiro orçamento", href="/quotes/new", role="button", cls="secondary"),
                cls="card"
            ),
            id="quote-list"
        )

    return Div(*[quote_list_item(q) for q in quotes], id="quote-list")


# ============================================================================
# NEW QUOTE
# ============================================================================

def material_row(description="", quantity=""):
    """One editable material line"""
    return Div(
        Input(name="material_description", value=description, placeholder="Material (ex.: tinta acrílica branca)"),
        Input(name="material_quantity", value=quantity, placeholder="Qtd (opcional)"),
        Button("×", type="button", cls="secondary", title="Remover", aria_label="Remover material",
               onclick="this.closest('.material-row').remove()"),
        cls="material-row"
    )


def quote_form(values=None, error=None):
    values = values or {}
    category = values.get("category", QUOTE_CATEGORIES[0])
    needs_material = values.get("needs_material", False)
    materials = values.get("materials", [])

    return Div(
        Div(error, cls="alert alert-error") if error else None,
        Form(
            Label("Categoria",
                Select(
                    *[Option(c, value=c, selected=(c == category)) for c in QUOTE_CATEGORIES],
                    name="category"
                )
            ),
            Label("Descrição do serviço",
                Textarea(values.get("description", ""), name="description", rows="5",
                         placeholder="Descreva o que será feito (ex.: preparação e pintura de paredes e teto, proteção do ambiente...)")
            ),
            Label("Valor mão de obra (R$)",
                Input(name="labor_value", value=values.get("labor_value", ""), inputmode="decimal",
                      placeholder="Ex.: 2850 ou 2850,00", required=True)
            ),
            Label(
                Input(type="checkbox", name="needs_material", value="1", checked=needs_material,
                      onchange="document.getElementById('materials-section').hidden = !this.checked"),
                "Necessita materiais?",
                cls="checkbox"
            ),
            Div(
                Div(
                    Strong("Materiais necessários"),
                    Button("+ Adicionar", type="button", cls="secondary",
                           hx_get="/quotes/new/material-row", hx_target="#material-rows", hx_swap="beforeend"),
                    cls="page-header", style="margin-bottom: 0.5rem;"
                ),
                P("Adicione somente se for necessário listar materiais no orçamento.", cls="muted"),
                Div(*[material_row(d, q) for d, q in materials], id="material-rows"),
                id="materials-section",
                hidden=not needs_material,
                cls="card",
                style="background: #fafafa;"
            ),
            Div(
                Button("Salvar orçamento", type="submit"),
                A("Voltar", href="/quotes", role="button", cls="secondary"),
                cls="form-actions"
            ),
            method="post",
            action="/quotes/new"
        ),
        cls="card"
    )


@rt("/quotes/new")
def get(req, session):
    auth = resolve_auth(session)
    if auth is None:
        return login_redirect(req)

    return page_layout("Novo orçamento",
        H1("Novo orçamento"),
        quote_form(),
        session=session
    )


@rt("/quotes/new/material-row")
def get(req, session):
    auth = resolve_auth(session)
    if auth is None:
        return login_redirect(req)
    return material_row()


@rt("/quotes/new")
async def post(req, session):
    auth = resolve_auth(session)
    if auth is None:
        return login_redirect(req)

    form = await req.form()
    materials = list(zip(form.getlist("material_description"), form.getlist("material_quantity")))
    values = {
        "category": form.get("category", ""),
        "description": form.get("description", ""),
        "labor_value": form.get("labor_value", ""),
        "needs_material": form.get("needs_material") in ("1", "on", "true"),
        "materials": materials,
    }

    try:
        draft = build_quote_draft(
            values["category"],
            values["description"],
            values["labor_value"],
            values["needs_material"],
            materials,
        )
        save_quote(auth, draft)
        return RedirectResponse("/quotes", status_code=303)

    except QuoteValidationError as e:
        error_msg = str(e)
    except NotAuthenticatedError as e:
        error_msg = str(e)
    except APIError as e:
        logger.error(f"Failed to save quote for {auth.user_id}: {e.message}")
        error_msg = e.message or str(e)
    except Exception as e:
        logger.error(f"Failed to save quote for {auth.user_id}: {e}")
        error_msg = str(e)

    return page_layout("Novo orçamento",
        H1("Novo orçamento"),
        quote_form(values, error=error_msg),
        session=session
    )


# ============================================================================
# QUOTE DETAIL
# ============================================================================

def material_line(item):
    """'description — quantity', or just the description"""
    if item.quantity:
        return Li(item.description, Span(f" — {item.quantity}", cls="muted"))
    return Li(item.description)


@rt("/quotes/{quote_id}")
def get(quote_id: str, req, session):
    auth = resolve_auth(session)
    if auth is None:
        return login_redirect(req)

    try:
        quote = get_quote(auth.client, quote_id, auth.user_id)
        if quote is None:
            return not_found_page(session)
        materials = get_quote_materials(auth.client, quote.id) if quote.needs_material else []
    except APIError as e:
        logger.error(f"Failed to load quote {quote_id} for {auth.user_id}: {e.message}")
        return load_error_page(e.message or str(e), session)
    except Exception as e:
        logger.error(f"Failed to load quote {quote_id} for {auth.user_id}: {e}")
        return load_error_page(str(e), session)

    return page_layout(quote.category_name or "Orçamento",
        A("← Voltar", href="/quotes"),
        Div(
            H1(quote.category_name or "Sem categoria", style="font-size: 1.4rem;"),
            P(quote.service_description, cls="description muted") if quote.service_description else None,
            P(Span("Valor mão de obra: ", cls="muted"), Strong(format_brl_from_cents(quote.labor_value_cents))),
            P(f"Criado em {format_date_br(quote.created_at)}", cls="muted"),
            cls="card", style="margin-top: 1rem;"
        ),
        Div(
            H3("Materiais necessários"),
            Ul(*[material_line(m) for m in materials], cls="material-list")
            if materials else P("Nenhum material informado.", cls="muted"),
            cls="card"
        ) if quote.needs_material else None,
        Div(
            A("Gerar documento", href=f"/quotes/{quote.id}/document", target="_blank", rel="noopener", role="button"),
            Button("Enviar WhatsApp (em breve)", type="button", cls="secondary", disabled=True),
            cls="actions"
        ),
        session=session
    )


# ============================================================================
# QUOTE DOCUMENT
# ============================================================================

@rt("/quotes/{quote_id}/document")
def get(quote_id: str, req, session):
    """Printable HTML document for one quote (stand-in for a PDF)"""
    if not is_valid_quote_id(quote_id):
        logger.info(f"Rejected document request with invalid id: {req.url.path}")
        return JSONResponse({"error": "invalid id", "details": f"path={req.url.path}"}, status_code=400)

    auth = resolve_auth(session)
    if auth is None:
        return JSONResponse({"error": "unauthorized"}, status_code=401)

    try:
        quote = get_quote(auth.client, quote_id, auth.user_id)
        if quote is None:
            return JSONResponse({"error": "quote not found", "details": "no row"}, status_code=404)
        materials = get_quote_materials(auth.client, quote.id)
    except APIError as e:
        logger.error(f"Failed to load document data for quote {quote_id}: {e.message}")
        return JSONResponse({"error": "quote not found", "details": e.message or str(e)}, status_code=404)

    html = render_quote_document(quote, materials)
    logger.info(f"Rendered document for quote {quote.id}")

    return Response(
        content=html,
        media_type=DOCUMENT_MEDIA_TYPE,
        headers={"Content-Disposition": f'inline; filename="{document_filename(quote.id)}"'}
    )


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    port = int(os.getenv("PORT", "5001"))
    print("\n" + "="*50)
    print("  Orçamentos - FastHTML + Supabase")
    print("="*50)
    print(f"  URL: http://localhost:{port}")
    print(f"  Supabase: {settings.supabase_url}")
    print("="*50 + "\n")

    serve(port=port)
