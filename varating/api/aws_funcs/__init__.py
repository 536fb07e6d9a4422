"""
AWS helpers
===========

Thin wrappers over `boto3` used by the HTTP routers and the Lambda handlers.

Contents
--------
- funcs.py    : client factory (`get_client`), S3 presigned URLs, put/delete, prefix cleanup
- textract.py : asynchronous document analysis (start job, collect blocks)
- sqs.py      : condition-extraction work messages
- bedrock.py  : agent invocation and Anthropic InvokeModel calls
"""
