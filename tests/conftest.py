"""Shared fixtures."""

import pytest

from docx_samples import app_xml, build_docx


@pytest.fixture
def make_docx():
    return build_docx


@pytest.fixture
def word_app_xml():
    return app_xml("Microsoft Office Word", "16.0000")
