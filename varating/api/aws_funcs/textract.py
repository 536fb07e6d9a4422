"""
Textract Utilities: asynchronous document analysis.

- ``start_document_analysis``: starts a TABLES/FORMS/QUERIES/SIGNATURES job on
  an S3 object and asks Textract to publish completion on SNS.
- ``get_document_analysis``: pages through a finished job's blocks.
"""

import logging

from varating.api.aws_funcs.funcs import get_client
from varating.database.config.config import settings

logger = logging.getLogger(__name__)

MEDICAL_QUERIES = [
    {"Text": "Patient Name"},
    {"Text": "Date of Service"},
    {"Text": "Provider Name"},
    {"Text": "Facility Name"},
    {"Text": "Diagnosis"},
    {"Text": "Medications"},
    {"Text": "Vital Signs"},
    {"Text": "Lab Results"},
    {"Text": "Procedures"},
    {"Text": "Chief Complaint"},
    {"Text": "Treatment Plan"},
    {"Text": "Follow-up Instructions"},
]
"""Queries asked of every medical record."""

FEATURE_TYPES = ["TABLES", "FORMS", "QUERIES", "SIGNATURES"]

MAX_RESULT_PAGES = 200
"""Upper bound on ``GetDocumentAnalysis`` pagination."""


class TextractJobError(Exception):
    """Raised when a job's results are requested but the job did not succeed."""


def start_document_analysis(bucket: str, key: str, document_id: str, textract_client=None) -> str:
    """
    Start an asynchronous analysis job.

    Parameters
    ----------
    bucket, key : str
        Location of the uploaded file.
    document_id : str
        Stored as the job's ``JobTag``.

    Returns
    -------
    str
        The AWS job id.

    Raises
    ------
    botocore.exceptions.ClientError
    """
    textract_client = textract_client or get_client("textract")
    params = {
        "DocumentLocation": {"S3Object": {"Bucket": bucket, "Name": key}},
        "FeatureTypes": FEATURE_TYPES,
        "QueriesConfig": {"Queries": MEDICAL_QUERIES},
        "JobTag": str(document_id),
    }
    if settings.TEXTRACT_SNS_TOPIC_ARN and settings.TEXTRACT_SNS_ROLE_ARN:
        params["NotificationChannel"] = {
            "SNSTopicArn": settings.TEXTRACT_SNS_TOPIC_ARN,
            "RoleArn": settings.TEXTRACT_SNS_ROLE_ARN,
        }
    response = textract_client.start_document_analysis(**params)
    return response["JobId"]


def get_document_analysis(job_id: str, textract_client=None) -> list:
    """
    Collect every block of a finished job.

    Returns
    -------
    list[dict]
        Blocks of at most ``MAX_RESULT_PAGES`` result pages.

    Raises
    ------
    TextractJobError
        When the job status is not ``SUCCEEDED``.
    """
    textract_client = textract_client or get_client("textract")
    blocks = []
    next_token = None
    for page in range(MAX_RESULT_PAGES):
        params = {"JobId": job_id}
        if next_token:
            params["NextToken"] = next_token
        response = textract_client.get_document_analysis(**params)
        if response.get("JobStatus", "SUCCEEDED") != "SUCCEEDED":
            raise TextractJobError(f"Textract job failed: {response.get('StatusMessage') or response.get('JobStatus')}")
        blocks.extend(response.get("Blocks") or [])
        next_token = response.get("NextToken")
        if not next_token:
            break
    else:
        logger.warning(f"Textract job {job_id} has more than {MAX_RESULT_PAGES} result pages; truncated")
    logger.info(f"Retrieved {len(blocks)} blocks for Textract job {job_id}")
    return blocks
