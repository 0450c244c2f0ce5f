"""MongoDB document serialization utilities."""

from bson import ObjectId


def serialize_doc(doc):
    """Convert MongoDB document to JSON-safe dict"""
    if doc is None:
        return None
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(d) for d in doc]
    if isinstance(doc, dict):
        return {key: serialize_doc(value) for key, value in doc.items() if key != "_id"}
    return doc


def to_evaluation_summary_row(record: dict) -> dict:
    """History listing row: the record without the (large) raw model response."""
    row = serialize_doc(record)
    result = row.get("evaluation_result")
    if isinstance(result, dict) and "rawResponse" in result:
        row["evaluation_result"] = {k: v for k, v in result.items() if k != "rawResponse"}
    return row
