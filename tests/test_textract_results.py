from varating.processing.textract_results import (
    CHUNK_MAX_CHARS,
    CHUNK_MIN_CHARS,
    analyze_blocks,
    chunk_page_text,
    extract_table,
    normalize_entity_type,
)


def _line(block_id, text, page=1, confidence=99.0):
    return {"Id": block_id, "BlockType": "LINE", "Text": text, "Page": page, "Confidence": confidence}


def _word(block_id, text, page=1):
    return {"Id": block_id, "BlockType": "WORD", "Text": text, "Page": page, "Confidence": 90.0}


def _key_value(key_id, value_id, key_words, value_words, page=1):
    key = {
        "Id": key_id,
        "BlockType": "KEY_VALUE_SET",
        "EntityTypes": ["KEY"],
        "Page": page,
        "Confidence": 80.0,
        "Relationships": [
            {"Type": "VALUE", "Ids": [value_id]},
            {"Type": "CHILD", "Ids": [w["Id"] for w in key_words]},
        ],
    }
    value = {
        "Id": value_id,
        "BlockType": "KEY_VALUE_SET",
        "EntityTypes": ["VALUE"],
        "Page": page,
        "Confidence": 80.0,
        "Relationships": [{"Type": "CHILD", "Ids": [w["Id"] for w in value_words]}],
    }
    return [key, value] + key_words + value_words


def test_normalize_entity_type():
    assert normalize_entity_type("Patient Name") == "patient_name"
    assert normalize_entity_type("Date of Service ") == "service_date"
    assert normalize_entity_type("Blood  Type") == "blood_type"
    assert normalize_entity_type("") == "unknown"


def test_chunks_drop_short_pages():
    assert chunk_page_text("short line\nanother") == []


def test_chunk_keeps_page_and_counts():
    text = "\n".join(f"line {i} " + "x" * 60 for i in range(20))
    chunks = chunk_page_text(text, page_number=3, starting_index=5)
    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk["chunk_index"] == 5
    assert chunk["page_number"] == 3
    assert chunk["line_count"] == 20
    assert chunk["char_count"] == len(chunk["content"])


def test_long_page_is_split_with_overlap():
    lines = [f"{i:04d} " + "y" * 95 for i in range(200)]
    chunks = chunk_page_text("\n".join(lines))
    assert len(chunks) >= 2
    assert all(c["char_count"] <= CHUNK_MAX_CHARS for c in chunks)
    first_lines = chunks[0]["content"].split("\n")
    second_lines = chunks[1]["content"].split("\n")
    assert second_lines[:3] == first_lines[-3:]
    assert chunks[-1]["char_count"] >= CHUNK_MIN_CHARS


def test_extract_table_uses_first_row_as_headers():
    words = [_word("w1", "Drug"), _word("w2", "Dose"), _word("w3", "Aspirin"), _word("w4", "81mg")]
    cells = [
        {"Id": f"c{i}", "BlockType": "CELL", "RowIndex": r, "ColumnIndex": c, "Relationships": [{"Type": "CHILD", "Ids": [w]}]}
        for i, (r, c, w) in enumerate([(1, 1, "w1"), (1, 2, "w2"), (2, 1, "w3"), (2, 2, "w4")])
    ]
    table = {"Id": "t1", "BlockType": "TABLE", "Confidence": 95.0, "Relationships": [{"Type": "CHILD", "Ids": [c["Id"] for c in cells]}]}
    blocks = [table] + cells + words
    result = extract_table(table, blocks, {b["Id"]: b for b in blocks})
    assert result == {"headers": ["Drug", "Dose"], "rows": [["Aspirin", "81mg"]], "confidence": 95.0}


def test_analyze_blocks():
    body = "Assessment: chronic lumbar strain with radiating pain. " * 12
    blocks = [
        {"Id": "p1", "BlockType": "PAGE", "Page": 1},
        _line("l1", "Patient: John Doe", page=1),
        _line("l2", body, page=1),
        _line("l3", "Follow-up in two weeks", page=2),
        {"Id": "s1", "BlockType": "SIGNATURE", "Page": 2, "Confidence": 70.0, "Geometry": {"BoundingBox": {"Top": 0.9}}},
    ]
    blocks += _key_value("k1", "v1", [_word("kw1", "Patient"), _word("kw2", "Name")], [_word("vw1", "John"), _word("vw2", "Doe")])

    result = analyze_blocks(blocks)

    assert result["total_pages"] == 2
    assert result["full_text"].startswith("=== PAGE 1 ===\nPatient: John Doe")
    assert "=== PAGE 2 ===\nFollow-up in two weeks" in result["full_text"]
    # page 2 is too short for a chunk
    assert [c["page_number"] for c in result["chunks"]] == [1]
    assert result["form_fields"] == {"Patient Name": "John Doe"}
    assert result["entities"][0]["entity_type"] == "patient_name"
    assert result["entities"][0]["entity_value"] == "John Doe"
    assert result["signature_count"] == 1
    assert result["signatures"][0]["boundingBox"] == {"Top": 0.9}
    assert 0 < result["average_confidence"] <= 100
