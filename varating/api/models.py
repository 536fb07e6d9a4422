"""
Pydantic models used for request validation and API data contracts.

Fields whose validation messages are part of the API contract (token page
counts, upload-session metadata, required form fields) are typed loosely
here and checked by the service layer, so clients get the documented 400
instead of a generic 422.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class CheckoutSessionRequest(BaseModel):
    """Checkout for a token pack (``product_type``) or a legacy price."""

    mode: Optional[str] = Field(None, description="'subscription' or 'payment'.", examples=["payment"])
    success_url: str = Field(..., description="Redirect after a successful checkout.")
    cancel_url: str = Field(..., description="Redirect after a cancelled checkout.")
    product_type: Optional[str] = Field(None, description="Product catalog key.", examples=["tokens-100"])


class ValidateTokensRequest(BaseModel):
    pages_required: Optional[Any] = Field(None, description="Pages (tokens) the analysis needs.", examples=[12])


class ConsumeTokensRequest(BaseModel):
    tokens: int = Field(..., gt=0, description="Tokens to move from available to used.")


class TokenAlertRequest(BaseModel):
    """Token alert email trigger."""

    alert_type: Optional[str] = Field(None, description="'insufficient_tokens' or 'low_balance'.")
    pages_required: Optional[int] = Field(None, description="Pages the failed analysis needed.")
    current_balance: Optional[int] = Field(None, description="Balance shown in the email.")
    shortage: Optional[int] = Field(None, description="Missing tokens.")


class UploadSessionCreate(BaseModel):
    files: Optional[Any] = Field(None, description="Client file metadata (list).")


class UploadSessionUpdate(BaseModel):
    files: Optional[Any] = Field(None, description="Replacement file metadata (list).")
    progress: Optional[Any] = Field(None, description="Progress, 0..100.")
    auditLog: Optional[Any] = Field(None, description="Client audit entries to append (list).")
    version: Optional[int] = Field(None, description="Version the client last read.")


class PresignRequest(BaseModel):
    userId: Optional[str] = Field(None, description="Owner of the upload; must be the caller.")
    fileName: Optional[str] = Field(None, description="Object name under the owner's folder.")
    fileType: Optional[str] = Field(None, description="Content type of the upload.")


class S3UrlRequest(BaseModel):
    key: Optional[str] = Field(None, description="Object key, '<userId>/<fileName>'.")


class RenameDocumentRequest(BaseModel):
    document_id: Optional[str] = Field(None, description="Document to rename.")
    old_file_name: Optional[str] = Field(None, description="Current object key.")
    new_file_name: Optional[str] = Field(None, description="New object key.")


class DeleteDocumentRequest(BaseModel):
    document_id: Optional[str] = Field(None, description="Document to delete.")
    documentId: Optional[str] = Field(None, description="Alias of document_id.")


class NotifyRagAgentRequest(BaseModel):
    user_id: Optional[str] = Field(None, description="Owner of the document; must be the caller.")
    document_id: Optional[str] = Field(None, description="Document to reprocess.")


class ReprocessRequest(BaseModel):
    document_id: str = Field(..., description="Document whose conditions are extracted again.")


class ContactRequest(BaseModel):
    """Contact form submission."""

    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


class RegisterRequest(BaseModel):
    email: Optional[str] = Field(None, description="Login email.")
    password: Optional[str] = Field(None, description="At least 8 characters.")
    fullName: Optional[str] = Field(None, description="Display name stored on the profile.")


class ImpersonateRequest(BaseModel):
    user_id: Optional[str] = Field(None, description="User to impersonate.")


class ChatInput(BaseModel):
    text: Optional[str] = None


class ChatRequest(BaseModel):
    """One turn of the agent chat."""

    input: Optional[ChatInput] = Field(None, description="User message.")
    sessionId: Optional[str] = Field(None, description="Agent session id kept by the client.")


class Disability(BaseModel):
    percent: int = Field(..., ge=0, le=100, description="Individual rating.")
    extremity: Optional[str] = Field(None, description="leftArm, rightArm, leftLeg, rightLeg or none.")


class CalculatorRequest(BaseModel):
    """Combined rating and monthly compensation inputs."""

    disabilities: List[Disability] = Field(default_factory=list)
    has_spouse: bool = False
    spouse_aa: bool = Field(False, description="Spouse receives Aid & Attendance.")
    child_u18: int = Field(0, ge=0)
    child_o18: int = Field(0, ge=0, description="Children 18-24 in school.")
    parent_count: int = Field(0, ge=0, le=2)
