"""Text extraction for uploaded files.

PDF via pypdf, Word documents via python-docx, everything else is read as
UTF-8. Parsing runs in a worker thread so the event loop is not blocked.
"""

import asyncio
import os
import zipfile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from lxml.etree import XMLSyntaxError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from shared.errors import ExtractionError
from shared.helper.HelperConfig import HelperConfig

PDF_MIME_TYPES = ("application/pdf",)
DOCX_MIME_TYPES = ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",)

METHOD_PDF = "pdf"
METHOD_DOCX = "docx"
METHOD_TEXT = "text"


class TextExtractor:
    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()

    ##########################################
    ################ GETTER ##################
    ##########################################

    @staticmethod
    def get_method(mime_type: str | None, filename: str | None = None) -> str:
        """Pick the extraction method from the declared MIME type, falling back to the file extension.

        Args:
            mime_type (str | None): Declared content type of the upload.
            filename (str | None): Original filename.

        Returns:
            str: "pdf", "docx" or "text".
        """
        mime = (mime_type or "").split(";")[0].strip().lower()
        if mime in PDF_MIME_TYPES:
            return METHOD_PDF
        if mime in DOCX_MIME_TYPES:
            return METHOD_DOCX
        ext = os.path.splitext(filename or "")[1].lower()
        if not mime or mime == "application/octet-stream":
            if ext == ".pdf":
                return METHOD_PDF
            if ext == ".docx":
                return METHOD_DOCX
        return METHOD_TEXT

    ##########################################
    ################ CORE ####################
    ##########################################

    async def extract(self, path: str, mime_type: str | None, filename: str | None = None) -> tuple[str, str]:
        """Extract the text of a file on disk.

        Args:
            path (str): Path of the uploaded temp file.
            mime_type (str | None): Declared content type.
            filename (str | None): Original filename, used when the MIME type is generic.

        Returns:
            tuple[str, str]: The extracted text and the method used.

        Raises:
            ExtractionError: If the file cannot be parsed or decoded.
        """
        method = self.get_method(mime_type, filename)
        extractors = {
            METHOD_PDF: self._extract_pdf,
            METHOD_DOCX: self._extract_docx,
            METHOD_TEXT: self._extract_plain,
        }
        try:
            text = await asyncio.to_thread(extractors[method], path)
        except (OSError, ValueError, KeyError, PyPdfError, PackageNotFoundError, XMLSyntaxError, zipfile.BadZipFile) as e:
            self.logging.error("Text extraction (%s) failed for %s: %s", method, filename or path, e)
            raise ExtractionError(f"Could not extract text from '{filename or os.path.basename(path)}'.") from e
        self.logging.debug("Extracted %d characters from %s via %s", len(text), filename or path, method)
        return text, method

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @staticmethod
    def _extract_pdf(path: str) -> str:
        # the file handle is closed whether or not parsing succeeds
        with open(path, "rb") as fh:
            reader = PdfReader(fh)
            return "\n".join(page.extract_text() or "" for page in reader.pages)

    @staticmethod
    def _extract_docx(path: str) -> str:
        with open(path, "rb") as fh:
            document = Document(fh)
        return "\n".join(paragraph.text for paragraph in document.paragraphs)

    @staticmethod
    def _extract_plain(path: str) -> str:
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()
