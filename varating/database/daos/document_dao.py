"""
Document DAO

Purpose
-------
Persistence for uploaded documents and the rows the OCR pipeline derives from
them:
- `documents` (lookup by id / owner / file URL, status updates, rename)
- `document_chunks` (replace-all per document, ordered read)
- `medical_entities` (bulk insert)
- `textract_jobs` (create, lookup by AWS job id, status updates)

Design
------
- The DAO expects an active SQLAlchemy `Session` supplied by the caller.
- Dependent rows are removed explicitly (there are no FK cascades), see
  ``deleteDocumentWithDependents``.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.entities.conditions import ConditionUpdate, DisabilityEstimate
from varating.database.entities.documents import Document, DocumentChunk, MedicalEntity, TextractJob
from varating.database.helpers.columns import utcnow

logger = logging.getLogger("uvicorn")


class DocumentDao:
    """
    Data Access Object (DAO) for documents and their OCR artefacts.
    """

    # --- documents ---

    def createDocument(self, session: Session, document: Document) -> Document:
        """
        Stage and flush a new document.

        Raises
        ------
        sqlalchemy.exc.IntegrityError
            When ``(user_id, file_url)`` already exists.
        """
        try:
            session.add(document)
            session.flush()
            return document
        except Exception as e:
            logger.error(f"Error in DocumentDao.createDocument. Error: {e}")
            raise e

    def fetchDocumentById(self, session: Session, document_id: UUID):
        try:
            return session.get(Document, document_id)
        except Exception as e:
            logger.error(f"Error in DocumentDao.fetchDocumentById. Error: {e}")
            raise e

    def fetchOwnedDocument(self, session: Session, document_id: UUID, user_id: UUID):
        try:
            return (
                session.query(Document)
                .filter(Document.id == document_id, Document.user_id == user_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in DocumentDao.fetchOwnedDocument. Error: {e}")
            raise e

    def fetchDocumentByFileUrl(self, session: Session, user_id: UUID, file_url: str):
        try:
            return (
                session.query(Document)
                .filter(Document.user_id == user_id, Document.file_url == file_url)
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in DocumentDao.fetchDocumentByFileUrl. Error: {e}")
            raise e

    def fetchDocumentByKeySuffix(self, session: Session, user_id: UUID, key: str):
        """
        Fetch a document of ``user_id`` whose ``file_url`` ends with ``/<key>``.

        Returns
        -------
        Document | None
        """
        try:
            return (
                session.query(Document)
                .filter(Document.user_id == user_id, Document.file_url.endswith(f"/{key}", autoescape=True))
                .first()
            )
        except Exception as e:
            logger.error(f"Error in DocumentDao.fetchDocumentByKeySuffix. Error: {e}")
            raise e

    def fetchDocumentIdsByUserId(self, session: Session, user_id: UUID) -> list:
        try:
            return [row[0] for row in session.query(Document.id).filter(Document.user_id == user_id).all()]
        except Exception as e:
            logger.error(f"Error in DocumentDao.fetchDocumentIdsByUserId. Error: {e}")
            raise e

    def updateDocumentStatus(
        self,
        session: Session,
        document_id: UUID,
        processing_status: Optional[str] = None,
        textract_status: Optional[str] = None,
        rag_status: Optional[str] = None,
        error_message: Optional[str] = None,
        **extra,
    ) -> None:
        """
        Update the status columns that are given (None leaves a column as is).

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        document_id : UUID
            Target document.
        processing_status, textract_status, rag_status, error_message : str, optional
            New values.
        **extra
            Further columns to set (e.g. ``total_chunks``, ``processed_at``).
        """
        try:
            document = session.get(Document, document_id)
            if document is None:
                logger.warning(f"DocumentDao.updateDocumentStatus: document {document_id} not found")
                return
            if processing_status:
                document.processing_status = processing_status
            if textract_status:
                document.textract_status = textract_status
            if rag_status:
                document.rag_status = rag_status
            if error_message:
                document.error_message = error_message
            for column, value in extra.items():
                setattr(document, column, value)
            document.updated_at = utcnow()
            session.flush()
        except Exception as e:
            logger.error(f"Error in DocumentDao.updateDocumentStatus. Error: {e}")
            raise e

    def deleteDocumentWithDependents(self, session: Session, document_id: UUID) -> None:
        """
        Delete a document together with its chunks, entities, Textract jobs,
        disability estimates and condition updates.
        """
        try:
            for model in (DocumentChunk, MedicalEntity, TextractJob, DisabilityEstimate, ConditionUpdate):
                session.query(model).filter(model.document_id == document_id).delete(synchronize_session=False)
            session.query(Document).filter(Document.id == document_id).delete(synchronize_session=False)
        except Exception as e:
            logger.error(f"Error in DocumentDao.deleteDocumentWithDependents. Error: {e}")
            raise e

    def deleteDocumentsByUserId(self, session: Session, user_id: UUID) -> int:
        try:
            return session.query(Document).filter(Document.user_id == user_id).delete(synchronize_session=False)
        except Exception as e:
            logger.error(f"Error in DocumentDao.deleteDocumentsByUserId. Error: {e}")
            raise e

    # --- document_chunks ---

    def replaceChunks(self, session: Session, document_id: UUID, chunks: list) -> int:
        """
        Replace every chunk of a document.

        Parameters
        ----------
        chunks : list[DocumentChunk]
            New chunks, already bound to ``document_id``.

        Returns
        -------
        int
            Number of chunks stored.
        """
        try:
            session.query(DocumentChunk).filter(DocumentChunk.document_id == document_id).delete(
                synchronize_session=False
            )
            session.add_all(chunks)
            session.flush()
            return len(chunks)
        except Exception as e:
            logger.error(f"Error in DocumentDao.replaceChunks. Error: {e}")
            raise e

    def fetchChunksByDocumentId(self, session: Session, document_id: UUID):
        try:
            return (
                session.query(DocumentChunk)
                .filter(DocumentChunk.document_id == document_id)
                .order_by(DocumentChunk.page_number, DocumentChunk.chunk_index)
                .all()
            )
        except Exception as e:
            logger.error(f"Error in DocumentDao.fetchChunksByDocumentId. Error: {e}")
            raise e

    def deleteChunksByDocumentIds(self, session: Session, document_ids: list) -> int:
        try:
            if not document_ids:
                return 0
            return (
                session.query(DocumentChunk)
                .filter(DocumentChunk.document_id.in_(document_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in DocumentDao.deleteChunksByDocumentIds. Error: {e}")
            raise e

    # --- medical_entities ---

    def createEntities(self, session: Session, entities: list) -> int:
        try:
            session.add_all(entities)
            session.flush()
            return len(entities)
        except Exception as e:
            logger.error(f"Error in DocumentDao.createEntities. Error: {e}")
            raise e

    def deleteEntitiesByDocumentIds(self, session: Session, document_ids: list) -> int:
        try:
            if not document_ids:
                return 0
            return (
                session.query(MedicalEntity)
                .filter(MedicalEntity.document_id.in_(document_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in DocumentDao.deleteEntitiesByDocumentIds. Error: {e}")
            raise e

    # --- textract_jobs ---

    def createTextractJob(self, session: Session, job: TextractJob) -> TextractJob:
        try:
            session.add(job)
            session.flush()
            return job
        except Exception as e:
            logger.error(f"Error in DocumentDao.createTextractJob. Error: {e}")
            raise e

    def fetchTextractJob(self, session: Session, aws_job_id: str):
        try:
            return session.query(TextractJob).filter(TextractJob.aws_job_id == aws_job_id).one_or_none()
        except Exception as e:
            logger.error(f"Error in DocumentDao.fetchTextractJob. Error: {e}")
            raise e

    def updateTextractJob(
        self,
        session: Session,
        aws_job_id: str,
        status: str,
        error_message: Optional[str] = None,
        raw_output: Optional[list] = None,
    ) -> None:
        try:
            job = self.fetchTextractJob(session, aws_job_id)
            if job is None:
                logger.warning(f"DocumentDao.updateTextractJob: job {aws_job_id} not found")
                return
            job.status = status
            job.completed_at = utcnow()
            if error_message is not None:
                job.error_message = error_message
            if raw_output is not None:
                job.raw_output = raw_output
            session.flush()
        except Exception as e:
            logger.error(f"Error in DocumentDao.updateTextractJob. Error: {e}")
            raise e

    def deleteTextractJobsByDocumentIds(self, session: Session, document_ids: list) -> int:
        try:
            if not document_ids:
                return 0
            return (
                session.query(TextractJob)
                .filter(TextractJob.document_id.in_(document_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in DocumentDao.deleteTextractJobsByDocumentIds. Error: {e}")
            raise e
