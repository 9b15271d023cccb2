import zipfile

import pytest
from docx import Document

from services.ingestion.TextExtractor import TextExtractor
from shared.errors import ExtractionError


class TestGetMethod:
    """MIME type and extension dispatch."""

    @pytest.mark.parametrize(
        "mime,filename,expected",
        [
            ("application/pdf", "a.bin", "pdf"),
            ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", None, "docx"),
            ("text/plain; charset=utf-8", "notes.pdf", "text"),
            (None, "report.PDF", "pdf"),
            ("application/octet-stream", "cv.docx", "docx"),
            ("", "notes.md", "text"),
            (None, None, "text"),
        ],
    )
    def test_dispatch(self, mime, filename, expected):
        """The declared MIME type wins, the extension only breaks generic types."""
        assert TextExtractor.get_method(mime, filename) == expected


class TestExtract:
    """Reading files from disk."""

    async def test_plain_text(self, helper_config, tmp_path):
        """UTF-8 text comes back verbatim."""
        path = tmp_path / "note.txt"
        path.write_text("Grüße aus Köln\nzweite Zeile", encoding="utf-8")
        text, method = await TextExtractor(helper_config).extract(str(path), "text/plain", "note.txt")
        assert text == "Grüße aus Köln\nzweite Zeile"
        assert method == "text"

    async def test_docx(self, helper_config, tmp_path):
        """Paragraphs of a Word document are joined by newlines."""
        document = Document()
        document.add_paragraph("First paragraph")
        document.add_paragraph("Second paragraph")
        path = tmp_path / "doc.docx"
        document.save(str(path))

        text, method = await TextExtractor(helper_config).extract(str(path), None, "doc.docx")
        assert method == "docx"
        assert "First paragraph\nSecond paragraph" in text

    async def test_broken_pdf(self, helper_config, tmp_path):
        """Garbage declared as PDF raises ExtractionError."""
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"this is not a pdf at all")
        with pytest.raises(ExtractionError):
            await TextExtractor(helper_config).extract(str(path), "application/pdf", "broken.pdf")

    async def test_invalid_utf8(self, helper_config, tmp_path):
        """Undecodable plain text raises ExtractionError."""
        path = tmp_path / "blob.txt"
        path.write_bytes(b"\xff\xfe\xfa\x00\x81")
        with pytest.raises(ExtractionError):
            await TextExtractor(helper_config).extract(str(path), "text/plain", "blob.txt")

    async def test_missing_file(self, helper_config, tmp_path):
        """A vanished temp file raises ExtractionError."""
        with pytest.raises(ExtractionError):
            await TextExtractor(helper_config).extract(str(tmp_path / "gone.txt"), "text/plain", "gone.txt")

    async def test_docx_with_broken_body(self, helper_config, tmp_path):
        """A valid zip whose document.xml is cut off raises ExtractionError."""
        document = Document()
        document.add_paragraph("Will be cut in half")
        source = tmp_path / "source.docx"
        document.save(str(source))

        path = tmp_path / "broken.docx"
        with zipfile.ZipFile(source) as src, zipfile.ZipFile(path, "w") as dst:
            for info in src.infolist():
                data = src.read(info.filename)
                if info.filename == "word/document.xml":
                    data = data[: len(data) // 2]
                dst.writestr(info, data)

        with pytest.raises(ExtractionError):
            await TextExtractor(helper_config).extract(
                str(path),
                "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
                "broken.docx",
            )

    @pytest.mark.parametrize("content", [b"", b"%PDF-1.7\n1 0 obj\n<< /Type /Catalog"])
    async def test_empty_and_truncated_pdf(self, helper_config, tmp_path, content):
        """Empty and truncated PDFs raise ExtractionError."""
        path = tmp_path / "cut.pdf"
        path.write_bytes(content)
        with pytest.raises(ExtractionError):
            await TextExtractor(helper_config).extract(str(path), "application/pdf", "cut.pdf")
