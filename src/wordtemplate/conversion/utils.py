"""Helpers around the headless soffice converter."""

from __future__ import annotations

import logging
import re
import shlex
import shutil
import subprocess
import tempfile
from pathlib import Path

from wordtemplate.config import settings
from wordtemplate.conversion.constants import (
    DEFAULT_INPUT_NAME,
    NORMALIZE_INPUT_NAME,
    OUTPUT_DIR_NAME,
    PROFILE_DIR_NAME,
    SUPPORTED_FORMATS,
)
from wordtemplate.exceptions import ConversionError, NormalizationError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def safe_rmtree(path: Path) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning(f"Failed to clean up work directory {path}: {exc}")


def safe_stem(filename: str) -> str:
    stem = _UNSAFE_NAME_RE.sub("_", Path(filename).stem).strip("._")
    return stem or "document"


def build_command(input_path: Path, output_dir: Path, target_format: str, profile_dir: Path) -> list:
    args = settings.soffice_args.format(
        input=shlex.quote(str(input_path)),
        outdir=shlex.quote(str(output_dir)),
        format=shlex.quote(target_format),
        profile=shlex.quote(profile_dir.as_uri()),
    )
    return [settings.soffice_command] + shlex.split(args)


def run_soffice(input_path: Path, output_dir: Path, target_format: str) -> Path:
    """Convert ``input_path`` into ``output_dir`` and return the produced file."""
    extension = target_format.split(":", 1)[0].lower()
    if extension not in SUPPORTED_FORMATS:
        raise ConversionError(
            f"Unsupported conversion format: {target_format}",
            status_code=400,
            details={"format": target_format},
        )

    output_dir.mkdir(parents=True, exist_ok=True)
    # A private profile lets concurrent conversions run side by side.
    profile_dir = input_path.parent / PROFILE_DIR_NAME
    cmd = build_command(input_path, output_dir, target_format, profile_dir)
    logger.debug(f"Running: {' '.join(cmd)}")

    try:
        subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=settings.conversion_timeout_seconds,
        )
    except FileNotFoundError as exc:
        logger.error(f"Conversion command not found: {settings.soffice_command}")
        raise ConversionError(
            "Document conversion failed (command not found). "
            "Install LibreOffice or configure WORDTEMPLATE_SOFFICE_COMMAND.",
            status_code=503,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        logger.error(f"Conversion timed out after {settings.conversion_timeout_seconds}s")
        raise ConversionError("Document conversion timed out.", status_code=504) from exc
    except subprocess.CalledProcessError as exc:
        error_detail = (exc.stderr or b"").decode(errors="ignore").strip()
        logger.error(f"soffice exited with code {exc.returncode}: {error_detail}")
        message = "Document conversion failed."
        if error_detail:
            message = f"{message} {error_detail}"
        raise ConversionError(message, details={"returncode": exc.returncode}) from exc

    expected = output_dir / f"{input_path.stem}.{extension}"
    if not expected.exists():
        raise ConversionError("Document conversion failed to produce output.")
    return expected


def convert_bytes(data: bytes, target_format: str, filename: str = DEFAULT_INPUT_NAME) -> bytes:
    work_dir = Path(tempfile.mkdtemp(prefix=settings.temp_dir_prefix))
    try:
        input_path = work_dir / f"{safe_stem(filename)}.docx"
        write_bytes(input_path, data)
        output_path = run_soffice(input_path, work_dir / OUTPUT_DIR_NAME, target_format)
        output = output_path.read_bytes()
        logger.info(f"Converted {filename} to {target_format}: {len(data)} -> {len(output)} bytes")
        return output
    finally:
        safe_rmtree(work_dir)


def normalize_bytes(data: bytes) -> bytes:
    """Re-save a .docx through soffice so its runs come out consistently."""
    try:
        return convert_bytes(data, "docx", NORMALIZE_INPUT_NAME)
    except ConversionError as exc:
        raise NormalizationError(
            f"Failed to normalize template: {exc.message}",
            details=exc.details,
        ) from exc


def check_availability() -> bool:
    try:
        completed = subprocess.run(
            [settings.soffice_command, "--version"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=settings.conversion_timeout_seconds,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug(f"soffice not available: {exc}")
        return False
    return completed.returncode == 0
