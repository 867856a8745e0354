
from loguru import logger
from pydantic import BaseModel
from azure.ai.documentintelligence import DocumentIntelligenceClient
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError
from .bill_types import SourceDocument
from .errors import OcrFailure
from ..core.config import settings


class OcrArtifact(BaseModel):
    """Server-side analyze result kept by Document Intelligence until deleted"""
    model_id: str
    result_id: str | None = None


class OcrConversion(BaseModel):
    text: str
    artifact: OcrArtifact


class DocumentIntelligenceOcr:
    """
    OCR through Azure Document Intelligence.

    Usage:
        ocr = DocumentIntelligenceOcr.from_settings()
        conversion = ocr.convert(document, "en")
        ocr.delete_artifact(conversion.artifact)
    """

    def __init__(self, client: DocumentIntelligenceClient, model_id: str = "prebuilt-read"):
        self.client = client
        self.model_id = model_id

    @classmethod
    def from_settings(cls) -> "DocumentIntelligenceOcr":
        if not (settings.az_di_endpoint and settings.az_di_api_key):
            raise OcrFailure(
                "Azure Document Intelligence not configured. "
                "Set AZ_DI_ENDPOINT and AZ_DI_API_KEY."
            )

        endpoint = settings.az_di_endpoint
        logger.info(
            "Using Azure Document Intelligence for OCR",
            endpoint=endpoint[:50] + "..." if len(endpoint) > 50 else endpoint,
            model_id=settings.az_di_model_id,
        )
        client = DocumentIntelligenceClient(
            endpoint=endpoint,
            credential=AzureKeyCredential(settings.az_di_api_key)
        )
        return cls(client, model_id=settings.az_di_model_id)

    def convert(self, document: SourceDocument, language_hint: str) -> OcrConversion:
        """
        Run text recognition on one document.

        Args:
            document: PDF bytes plus content type
            language_hint: Locale passed to the service, e.g. "en"

        Returns:
            OcrConversion with the plain text and the analyze result to delete

        Raises:
            OcrFailure: upload, recognition or text retrieval failed
        """
        logger.info(
            f"Analyzing document of size {len(document.content)} bytes",
            identifier=document.identifier,
            language=language_hint,
        )

        try:
            poller = self.client.begin_analyze_document(
                self.model_id,
                body=document.content,
                locale=language_hint,
                content_type=document.content_type,
            )
            result = poller.result()
        except AzureError as e:
            raise OcrFailure(f"Document Intelligence analysis failed: {e}", identifier=document.identifier)

        details = getattr(poller, "details", None) or {}
        artifact = OcrArtifact(model_id=self.model_id, result_id=details.get("operation_id"))

        content = getattr(result, "content", None)
        if content is None:
            try:
                self.delete_artifact(artifact)
            except OcrFailure as e:
                logger.warning(f"Leaving analyze result behind: {e}", identifier=document.identifier)
            raise OcrFailure("Analysis returned no text content", identifier=document.identifier)

        logger.info(
            "Extracted OCR text",
            identifier=document.identifier,
            chars=len(content),
        )
        return OcrConversion(text=content, artifact=artifact)

    def delete_artifact(self, artifact: OcrArtifact) -> None:
        """Remove the analyze result held by the service."""
        if not artifact.result_id:
            return
        try:
            self.client.delete_analyze_result(artifact.model_id, artifact.result_id)
        except AzureError as e:
            raise OcrFailure(f"Could not delete analyze result {artifact.result_id}: {e}")
