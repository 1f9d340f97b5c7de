"""Conversion constants."""

# soffice filter names are accepted after a colon, e.g. "pdf:writer_pdf_Export".
SUPPORTED_FORMATS = {
    "docx",
    "pdf",
    "html",
    "odt",
}

DEFAULT_INPUT_NAME = "document.docx"
NORMALIZE_INPUT_NAME = "input.docx"
OUTPUT_DIR_NAME = "output"
PROFILE_DIR_NAME = "profile"
