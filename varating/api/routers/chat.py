"""
Agent chat route.
"""

import logging

from botocore.exceptions import ClientError
from fastapi import APIRouter, Depends, HTTPException

from varating.api.aws_funcs.bedrock import invoke_agent
from varating.api.models import ChatRequest
from varating.api.utils import get_current_user

router = APIRouter(tags=["chat"])
logger = logging.getLogger("uvicorn")


def chat_with_agent(text: str, session_id: str) -> dict:
    """
    One turn of the Bedrock agent conversation.

    Returns
    -------
    dict
        ``{'message': str, 'sessionId': str, 'requestId': str | None}``.
    """
    result = invoke_agent(session_id=session_id, input_text=text)
    return {"message": result["text"], "sessionId": session_id, "requestId": result["request_id"]}


@router.post("/chat")
def chat(data: ChatRequest, _: dict = Depends(get_current_user)):
    text = data.input.text if data.input else None
    if not text or not data.sessionId:
        raise HTTPException(status_code=400, detail="Missing input text or sessionId")
    try:
        return chat_with_agent(text, data.sessionId)
    except (ClientError, ValueError) as e:
        logger.error(f"Agent chat failed for session {data.sessionId}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
