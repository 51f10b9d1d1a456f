"""Lookup of a numeric sheet id by tab title.

Structural edits (row deletes) address tabs by numeric id, not by name.
Every call reads the document metadata afresh; ids are never cached, so a
tab that was recreated by hand is still found.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

_METADATA_PARAMS = {"fields": "sheets.properties(sheetId,title)"}


def resolve_sheet_id(client, spreadsheet_id: str, tab_title: str) -> int | None:
    """Return the numeric id of ``tab_title``, or None if the tab is absent.

    Transport errors propagate to the caller.
    """
    metadata = client.fetch_sheet_metadata(spreadsheet_id, params=_METADATA_PARAMS)
    for sheet in metadata.get("sheets", []):
        props = sheet.get("properties", {})
        if props.get("title") == tab_title:
            return int(props.get("sheetId", 0))
    logger.warning("Tab '%s' not found in spreadsheet", tab_title)
    return None
