"""
Quote Document Export

Renders a quote as a self-contained, print-ready HTML page (inline CSS, no
external resources). The viewer saves it as PDF through "print to file";
binary PDF generation is not implemented yet.
"""

from html import escape
from typing import List, Optional

from services.formatting import format_brl_from_cents, format_date_br
from services.quote_service import Quote, MaterialItem

DOCUMENT_MEDIA_TYPE = "text/html; charset=utf-8"

DOCUMENT_STYLES = """
    :root{
      --bg:#f3f4f6;
      --paper:#ffffff;
      --text:#111827;
      --muted:#6b7280;
      --line:#e5e7eb;
      --brand:#111827;
    }
    *{box-sizing:border-box}
    body{margin:0; background:var(--bg); font-family:ui-sans-serif, system-ui, -apple-system, "Segoe UI", Roboto, Arial, sans-serif; color:var(--text); padding:24px;}
    .page{max-width:820px; margin:0 auto; background:var(--paper); border:1px solid var(--line); border-radius:14px; box-shadow:0 10px 30px rgba(0,0,0,.06); overflow:hidden;}
    .header{padding:22px 24px; border-bottom:1px solid var(--line); display:flex; justify-content:space-between; gap:16px; align-items:flex-start;}
    .brand{font-weight:800; letter-spacing:.2px; font-size:18px; color:var(--brand); line-height:1.2;}
    .meta{text-align:right; font-size:12px; color:var(--muted); line-height:1.6; white-space:nowrap;}
    .content{padding:24px; display:grid; gap:18px;}
    .card{border:1px solid var(--line); border-radius:12px; padding:16px;}
    .title{margin:0; font-size:18px; font-weight:800;}
    .subtitle{margin-top:6px; font-size:13px; color:var(--muted);}
    .row{margin-top:12px; display:flex; justify-content:space-between; gap:12px; align-items:flex-start;}
    .label{font-size:12px; color:var(--muted); margin-bottom:4px;}
    .value{font-size:14px; font-weight:700; color:var(--text); white-space:nowrap;}
    .desc{margin-top:10px; font-size:13px; color:#374151; white-space:pre-wrap; line-height:1.5;}
    table{width:100%; border-collapse:collapse; margin-top:10px; font-size:13px;}
    th, td{padding:10px 8px; border-bottom:1px solid var(--line); text-align:left; vertical-align:top;}
    th{font-size:12px; color:var(--muted); font-weight:700;}
    .qty{text-align:right; color:var(--text);}
    .empty{color:var(--muted);}
    .total{display:flex; justify-content:space-between; align-items:center; padding:14px 16px; border:1px solid var(--line); border-radius:12px; background:#fafafa; margin-top:4px;}
    .total span{color:var(--muted); font-size:12px;}
    .total strong{font-size:16px;}
    .footer{padding:18px 24px; border-top:1px solid var(--line); color:var(--muted); font-size:12px; display:flex; justify-content:space-between; gap:12px; flex-wrap:wrap;}
    @media print{
      body{background:#fff; padding:0}
      .page{box-shadow:none; border:none; border-radius:0}
    }
"""


def document_filename(quote_id: str) -> str:
    """Suggested file name for the rendered document"""
    return f"quote-{quote_id}.html"


def _materials_rows(materials: List[MaterialItem]) -> str:
    if not materials:
        return '<tr><td colspan="2" class="empty">Nenhum material informado.</td></tr>'

    rows = []
    for item in sorted(materials, key=lambda m: m.sort_order):
        description = escape(item.description or "", quote=True)
        quantity = escape(str(item.quantity), quote=True) if item.quantity else "—"
        rows.append(f'<tr><td>{description}</td><td class="qty">{quantity}</td></tr>')
    return "\n            ".join(rows)


def render_quote_document(quote: Quote, materials: Optional[List[MaterialItem]] = None) -> str:
    """
    Generate the printable HTML document for a quote.

    Args:
        quote: Quote owned by the requester
        materials: Its material items (any order; rendered by sort_order)

    Returns:
        Complete HTML document as a string
    """
    materials = materials or []

    quote_id = escape(str(quote.id), quote=True)
    title = escape(quote.category_name or "Orçamento", quote=True)
    description = escape((quote.service_description or "").strip(), quote=True)
    value = escape(format_brl_from_cents(quote.labor_value_cents))
    created_at = escape(format_date_br(quote.created_at), quote=True) or "—"
    materials_flag = "Necessita" if quote.needs_material else "Não informado"

    description_html = f'<div class="desc">{description}</div>' if description else ""

    html = f"""<!doctype html>
<html lang="pt-BR">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Orçamento {quote_id}</title>
  <style>{DOCUMENT_STYLES}</style>
</head>
<body>
  <div class="page">
    <div class="header">
      <div>
        <div class="brand">Orçamento de Serviços</div>
        <div class="subtitle">Gerado pelo sistema</div>
      </div>
      <div class="meta">
        <div><strong>ID:</strong> {quote_id}</div>
        <div><strong>Data:</strong> {created_at}</div>
      </div>
    </div>

    <div class="content">
      <div class="card">
        <h1 class="title">{title}</h1>
        <div class="subtitle">Categoria do serviço</div>
        {description_html}
        <div class="row">
          <div>
            <div class="label">Valor mão de obra</div>
            <div class="value">{value}</div>
          </div>
          <div style="text-align:right">
            <div class="label">Materiais</div>
            <div class="value">{materials_flag}</div>
          </div>
        </div>
      </div>

      <div class="card">
        <div class="label" style="font-weight:700; color:var(--text)">Materiais necessários</div>
        <table>
          <thead>
            <tr><th>Item</th><th class="qty">Qtd (opcional)</th></tr>
          </thead>
          <tbody>
            {_materials_rows(materials)}
          </tbody>
        </table>
      </div>

      <div class="total">
        <span>Total (mão de obra)</span>
        <strong>{value}</strong>
      </div>
    </div>

    <div class="footer">
      <div>Observação: materiais podem ser fornecidos pelo cliente ou pelo prestador conforme combinado.</div>
      <div>Assinatura: __________________________</div>
    </div>
  </div>
</body>
</html>
"""

    return html
