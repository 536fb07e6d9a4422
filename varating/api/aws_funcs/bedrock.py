"""
Bedrock Utilities: agent invocation and Anthropic messages calls.

Both clients are built for ``BEDROCK_REGION``:
- ``invoke_agent``: InvokeAgent on the configured agent/alias; the streamed
  completion chunks are concatenated into one string.
- ``invoke_model``: InvokeModel with an Anthropic messages body; returns the
  decoded JSON response body.
"""

import json
import logging
from typing import Optional

from varating.api.aws_funcs.funcs import get_client
from varating.database.config.config import settings

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"


def invoke_agent(session_id: str, input_text: str, agent_client=None) -> dict:
    """
    Send one turn to the Bedrock agent.

    Parameters
    ----------
    session_id : str
        Agent session id; reusing it keeps the agent's conversation memory.
    input_text : str
        User/prompt text.

    Returns
    -------
    dict
        ``{'text': str, 'request_id': str | None}``.

    Raises
    ------
    botocore.exceptions.ClientError
    ValueError
        When the agent is not configured or the response has no completion.
    """
    if not settings.BEDROCK_AGENT_ID or not settings.BEDROCK_AGENT_ALIAS_ID:
        raise ValueError("Bedrock agent is not configured")
    agent_client = agent_client or get_client("bedrock-agent-runtime", region=settings.BEDROCK_REGION)
    response = agent_client.invoke_agent(
        agentId=settings.BEDROCK_AGENT_ID,
        agentAliasId=settings.BEDROCK_AGENT_ALIAS_ID,
        sessionId=session_id,
        inputText=input_text,
    )
    completion = response.get("completion")
    if completion is None:
        raise ValueError("Invalid response from Bedrock agent")

    parts = []
    for event in completion:
        chunk = event.get("chunk") or {}
        data = chunk.get("bytes")
        if data:
            parts.append(data.decode("utf-8"))
    request_id = (response.get("ResponseMetadata") or {}).get("RequestId")
    return {"text": "".join(parts), "request_id": request_id}


def invoke_model(prompt: str, max_tokens: int = 1000, model_id: Optional[str] = None, runtime_client=None) -> dict:
    """
    Run a single-message Anthropic prompt.

    Returns
    -------
    dict
        The decoded response body (``content`` list for Claude 3 models).

    Raises
    ------
    botocore.exceptions.ClientError
        ``ValidationException`` when the model id is not available.
    """
    runtime_client = runtime_client or get_client("bedrock-runtime", region=settings.BEDROCK_REGION)
    body = {
        "anthropic_version": ANTHROPIC_VERSION,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    response = runtime_client.invoke_model(
        modelId=model_id or settings.BEDROCK_MODEL_ID,
        contentType="application/json",
        accept="application/json",
        body=json.dumps(body),
    )
    return json.loads(response["body"].read())
