"""Readable references for quotes (DEV-001) and invoices (FAC-001)."""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional


def generate_readable_references(quotes: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Number quotes and invoices separately, in the given order (oldest first).

    A row with a `facture_number` is an invoice.
    """
    references: dict[str, str] = {}
    quote_index = 0
    invoice_index = 0
    for quote in quotes:
        if quote.get("facture_number"):
            invoice_index += 1
            references[quote["id"]] = f"FAC-{invoice_index:03d}"
        else:
            quote_index += 1
            references[quote["id"]] = f"DEV-{quote_index:03d}"
    return references


def get_readable_reference(
    quote_id: str,
    references: Mapping[str, str],
    fallback: Optional[str] = None,
) -> str:
    reference = references.get(quote_id)
    if reference is not None:
        return reference
    if fallback is not None:
        return fallback
    return f"#{quote_id[:8]}"
