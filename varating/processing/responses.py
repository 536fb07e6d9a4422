"""
Lambda response envelopes.

Lambda-style entry points answer ``{statusCode, headers, body}`` with a
JSON-encoded body instead of raising to the runtime.
"""

import json

from varating.database.helpers.columns import utcnow

JSON_HEADERS = {"Content-Type": "application/json", "Access-Control-Allow-Origin": "*"}


def lambda_response(status_code: int, body: dict) -> dict:
    return {"statusCode": status_code, "headers": dict(JSON_HEADERS), "body": json.dumps(body, default=str)}


def create_success_response(data) -> dict:
    """``200 {success: true, data, timestamp}``."""
    return lambda_response(200, {"success": True, "data": data, "timestamp": utcnow().isoformat()})


def create_error_response(status_code: int, message: str) -> dict:
    """``<status_code> {error, timestamp}``."""
    return lambda_response(status_code, {"error": message, "timestamp": utcnow().isoformat()})


def response_body(response: dict) -> dict:
    """Decoded body of an envelope built here."""
    return json.loads(response["body"])
