"""
Textract result parsing
=======================

Pure functions turning the blocks of a finished ``GetDocumentAnalysis`` job
into what the database stores:

- page text built from LINE blocks only (WORD blocks would duplicate it)
- form fields (KEY text -> VALUE text)
- signatures and tables
- medical entities from KEY blocks, with normalized entity types
- line-preserving chunks for the condition extractor

Nothing here touches AWS or the database.
"""

import re
from typing import Optional

CHUNK_MAX_CHARS = 8000
CHUNK_MIN_CHARS = 500
CHUNK_OVERLAP_LINES = 3

ENTITY_TYPE_MAPPINGS = {
    "patient name": "patient_name",
    "date of service": "service_date",
    "provider name": "provider_name",
    "facility name": "facility_name",
    "diagnosis": "diagnosis",
    "medication": "medication",
    "vital signs": "vital_signs",
    "lab results": "lab_results",
}


def _relationship_ids(block: dict, relationship_type: str) -> list:
    ids = []
    for relationship in block.get("Relationships") or []:
        if relationship.get("Type") == relationship_type:
            ids.extend(relationship.get("Ids") or [])
    return ids


def _is_key(block: dict) -> bool:
    return block.get("BlockType") == "KEY_VALUE_SET" and "KEY" in (block.get("EntityTypes") or [])


def text_of(block: Optional[dict], blocks_by_id: dict) -> str:
    """
    Text of a block, or the space-joined text of its CHILD blocks.
    """
    if not block:
        return ""
    if block.get("Text"):
        return block["Text"]
    children = (blocks_by_id.get(child_id) for child_id in _relationship_ids(block, "CHILD"))
    return " ".join(child["Text"] for child in children if child and child.get("Text"))


def normalize_entity_type(text: Optional[str]) -> str:
    """Map a KEY label to a stable entity type (``"Patient Name"`` -> ``"patient_name"``)."""
    if not text:
        return "unknown"
    normalized = text.lower().strip()
    return ENTITY_TYPE_MAPPINGS.get(normalized) or re.sub(r"\s+", "_", normalized)


def extract_form_fields(blocks: list, blocks_by_id: dict) -> dict:
    fields = {}
    for block in blocks:
        if not _is_key(block):
            continue
        value_ids = _relationship_ids(block, "VALUE")
        if not value_ids:
            continue
        key_text = text_of(block, blocks_by_id).strip()
        value_text = text_of(blocks_by_id.get(value_ids[0]), blocks_by_id).strip()
        if key_text and value_text:
            fields[key_text] = value_text
    return fields


def extract_signatures(blocks: list) -> list:
    return [
        {
            "confidence": block.get("Confidence"),
            "page": block.get("Page"),
            "boundingBox": (block.get("Geometry") or {}).get("BoundingBox"),
        }
        for block in blocks
        if block.get("BlockType") == "SIGNATURE"
    ]


def average_confidence(blocks: list) -> float:
    scores = [block["Confidence"] for block in blocks if block.get("Confidence")]
    return sum(scores) / len(scores) if scores else 0.0


def extract_table(table_block: dict, blocks: list, blocks_by_id: dict) -> dict:
    """
    Rebuild a TABLE block as ``{'headers', 'rows', 'confidence'}``; row 1 is
    the header row.
    """
    cell_ids = set(_relationship_ids(table_block, "CHILD"))
    cells = [
        block
        for block in blocks
        if block.get("BlockType") == "CELL"
        and (block.get("Id") in cell_ids or any(table_block.get("Id") in (r.get("Ids") or []) for r in block.get("Relationships") or []))
    ]
    table = {"headers": [], "rows": [], "confidence": table_block.get("Confidence")}
    if not cells:
        return table

    values = {(cell.get("RowIndex"), cell.get("ColumnIndex")): text_of(cell, blocks_by_id) for cell in cells}
    max_row = max(cell.get("RowIndex") or 0 for cell in cells)
    max_col = max(cell.get("ColumnIndex") or 0 for cell in cells)
    for row in range(1, max_row + 1):
        row_data = [values.get((row, col), "") for col in range(1, max_col + 1)]
        if row == 1:
            table["headers"] = row_data
        else:
            table["rows"].append(row_data)
    return table


def chunk_page_text(text: str, page_number: int = 1, starting_index: int = 0) -> list:
    """
    Split a page into line-preserving chunks.

    A chunk closes when the next line would push it over ``CHUNK_MAX_CHARS``
    and it already holds more than ``CHUNK_MIN_CHARS``; the next chunk starts
    with the last ``CHUNK_OVERLAP_LINES`` lines of the previous one. A trailing
    chunk shorter than ``CHUNK_MIN_CHARS`` is dropped.

    Returns
    -------
    list[dict]
        ``[{chunk_index, page_number, content, word_count, char_count, line_count}]``
    """
    chunks = []
    index = starting_index
    current = ""
    current_lines = []

    def make(content: str, lines: list, chunk_index: int) -> dict:
        return {
            "chunk_index": chunk_index,
            "page_number": page_number,
            "content": content,
            "word_count": len(content.split()),
            "char_count": len(content),
            "line_count": len(lines),
        }

    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > CHUNK_MAX_CHARS and len(current) > CHUNK_MIN_CHARS:
            chunks.append(make(current, current_lines, index))
            index += 1
            current_lines = current_lines[-CHUNK_OVERLAP_LINES:] + [line]
            current = "\n".join(current_lines)
        else:
            current_lines.append(line)
            current = candidate

    if len(current) >= CHUNK_MIN_CHARS:
        chunks.append(make(current, current_lines, index))
    return chunks


def analyze_blocks(blocks: list) -> dict:
    """
    Parse every block of a job.

    Returns
    -------
    dict
        ``full_text``, ``chunks``, ``entities``, ``form_fields``,
        ``signatures``, ``signature_count``, ``tables``,
        ``average_confidence`` (0-100) and ``total_pages``.
    """
    blocks_by_id = {block.get("Id"): block for block in blocks if block.get("Id")}
    page_lines = {}
    entities = []
    tables = []

    for block in blocks:
        page = block.get("Page") or 1
        block_type = block.get("BlockType")
        if block_type == "LINE":
            lines = page_lines.setdefault(page, [])
            if (block.get("Text") or "").strip():
                lines.append(block["Text"].strip())
        elif _is_key(block):
            value_ids = _relationship_ids(block, "VALUE")
            value_block = blocks_by_id.get(value_ids[0]) if value_ids else None
            if value_block:
                entities.append(
                    {
                        "entity_type": normalize_entity_type(text_of(block, blocks_by_id)),
                        "entity_value": text_of(value_block, blocks_by_id),
                        "confidence": block.get("Confidence") or 0,
                        "bounding_box": (block.get("Geometry") or {}).get("BoundingBox"),
                        "page_number": page,
                    }
                )
        elif block_type == "TABLE":
            tables.append(extract_table(block, blocks, blocks_by_id))

    full_text = []
    chunks = []
    for page in sorted(page_lines):
        page_text = "\n".join(page_lines[page])
        full_text.append(f"=== PAGE {page} ===\n{page_text}")
        chunks.extend(chunk_page_text(page_text, page, starting_index=len(chunks)))

    signatures = extract_signatures(blocks)
    pages = [block.get("Page") for block in blocks if block.get("Page")]
    return {
        "full_text": "\n\n".join(full_text),
        "chunks": chunks,
        "entities": entities,
        "form_fields": extract_form_fields(blocks, blocks_by_id),
        "signatures": signatures,
        "signature_count": len(signatures),
        "tables": tables,
        "average_confidence": average_confidence(blocks),
        "total_pages": max(pages) if pages else len(page_lines),
    }
