"""Prompt templates for the model-backed extraction phases."""

TOTALS_FALLBACK_PROMPT = """Extract ONLY the following fields from the estimate text and return strict JSON with keys: rcv, acv, netClaim, priceList, estimateCompletedAt (ISO date if possible). Use null when not found.

{pages}"""


LINE_ITEM_PROMPT = """Extract only {category} line items from the estimate text. Return strict JSON array 'items'. Each item: {{category, code?, description, quantity{{value,unit}}?, unitPrice?, totalPrice?, sourcePages[], confidence{ridge_cap_field}}}.

CRITICAL PAGE NUMBER RULES:
- sourcePages[] must contain the EXACT page number(s) where the line item appears
- If an item appears at the TOP of a page, use THAT page number, not the previous page
- Look for page footers like "Page: X" to confirm the correct page
- If a line item spans pages, include ALL pages in sourcePages[]
- Page numbers in the text (like "Page: 8") indicate where content ABOVE that footer belongs

{edge_rules}{hint}"""


EDGE_PROTECTION_RULES = """STRICT EXTRACTION RULES FOR EDGE PROTECTION:
- Extract ONLY real estimate line items with prices (must appear in a line-item table with QUANTITY and UNIT PRICE columns)
- Do NOT infer or calculate items from roof-report measurements (e.g., "Perimeter", "Eaves Flashing")
- Each returned item MUST include: description, quantity{value,unit}, sourcePages[], and either unitPrice or totalPrice
- Prefer items that include a code (e.g., RFG DRIP, DE). If no code is present, ensure the page clearly shows it as a billed line item
- If nothing meets these criteria, return []
"""


VERIFICATION_PROMPT = """Given the following extracted values and the source text segments, verify each field and return JSON array "verifications" and object "corrections". Each verification: {{field, extractedValue, observedValue, confidence (0..1), pages[], notes}}. Only include corrections where the observed value clearly differs.

Extracted: {extracted}

Source:
{pages}"""
