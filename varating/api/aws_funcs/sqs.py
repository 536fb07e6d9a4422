"""
SQS Utilities: condition-extraction work messages.
"""

import json
import uuid
from typing import Optional

from varating.api.aws_funcs.funcs import get_client
from varating.database.config.config import settings
from varating.database.helpers.columns import utcnow


def send_rag_work_message(user_id: str, document_id: str, queue_url: Optional[str] = None, sqs_client=None) -> str:
    """
    Queue a document for condition extraction.

    FIFO queues (``.fifo`` suffix) get the document id as message group and a
    unique deduplication id.

    Returns
    -------
    str
        The SQS message id.

    Raises
    ------
    ValueError
        When no work queue is configured.
    botocore.exceptions.ClientError
    """
    queue_url = queue_url or settings.RAG_WORK_QUEUE_URL
    if not queue_url:
        raise ValueError("RAG_WORK_QUEUE_URL is not configured")
    sqs_client = sqs_client or get_client("sqs")
    params = {
        "QueueUrl": queue_url,
        "MessageBody": json.dumps(
            {
                "user_id": str(user_id),
                "document_id": str(document_id),
                "timestamp": utcnow().isoformat(),
                "source": "document_processor",
            }
        ),
    }
    if queue_url.endswith(".fifo"):
        params["MessageGroupId"] = str(document_id)
        params["MessageDeduplicationId"] = f"{document_id}-{uuid.uuid4().hex}"
    response = sqs_client.send_message(**params)
    return response.get("MessageId")
