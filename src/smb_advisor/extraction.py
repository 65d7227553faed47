# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
PDF extraction adapter.

Given the object path of an uploaded tax return (liasse fiscale), this module:

1. downloads the file from the object store,
2. base64-encodes it,
3. sends it with a fixed extraction prompt to the OpenAI chat completions API,
4. parses the first JSON object found in the answer into FinancialRecord
   pre-fill data.

Extraction is best effort. When no API key is configured, or when anything
downstream fails (download, API call, parsing), the adapter returns an
all-zero placeholder record with an advisory note instead of raising. The
``success`` flag is only True when data was really extracted; ``status``
tells callers why a placeholder was returned.

Only one extraction may be in flight per user: ``ExtractionGuard`` rejects a
second request while the first one is outstanding. Given a lock directory it
uses lock files, so separate CLI processes refuse each other too.
"""

import base64
import json
import logging
import os
import re
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Literal, Optional

from openai import OpenAI

from .config import ExtractionConfig
from .models import FinancialRecord, financial_record_from_mapping
from .storage import ObjectStore

logger = logging.getLogger(__name__)

ExtractionStatus = Literal["extracted", "no_api_key", "failed"]

EXTRACTION_PROMPT = """Tu es un expert comptable français. Analyse cette liasse fiscale PDF et extrais les données financières suivantes au format JSON strict :

{
  "year": nombre (année de l'exercice fiscal, ex: 2024),
  "revenue": nombre (chiffre d'affaires en euros),
  "fixed_costs": nombre (charges fixes en euros),
  "variable_costs": nombre (charges variables en euros),
  "payroll": nombre (masse salariale en euros),
  "cash_flow": nombre (trésorerie disponible en euros),
  "notes": "texte (observations importantes sur les données)"
}

Instructions importantes :
- Retourne UNIQUEMENT le JSON, sans texte additionnel
- Tous les montants doivent être en euros (nombres décimaux)
- Si une donnée n'est pas trouvée, mets 0
- Pour year, extrais l'année fiscale du document
- Le chiffre d'affaires correspond au CA total HT
- Les charges fixes incluent : loyers, assurances, amortissements
- Les charges variables incluent : achats de marchandises, sous-traitance
- La masse salariale inclut salaires + charges sociales
- La trésorerie correspond à la trésorerie nette disponible

Analyse le document PDF et retourne uniquement le JSON."""

MESSAGE_EXTRACTED = (
    "Document analysé avec succès. Veuillez vérifier les informations extraites."
)
MESSAGE_NO_API_KEY = (
    "L'analyse automatique n'est pas configurée. "
    "Veuillez saisir les données manuellement."
)
MESSAGE_FAILED = (
    "Impossible d'analyser automatiquement le document. "
    "Veuillez saisir les données manuellement."
)
NOTES_NO_API_KEY = (
    "Analyse automatique indisponible (aucune clé API configurée). "
    "Veuillez saisir les données."
)
NOTES_FAILED = (
    "L'analyse automatique a rencontré une erreur. "
    "Veuillez saisir les données manuellement."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_UNSAFE_LOCK_CHARS = re.compile(r"[^A-Za-z0-9_-]")

# Must exceed the longest extraction, client retries included.
STALE_LOCK_SECONDS = 600.0


class ExtractionInProgressError(RuntimeError):
    """Raised when a user starts an extraction while another one is running."""


@dataclass(frozen=True)
class ExtractionResult:
    """
    Outcome of a document analysis.

    Attributes:
        success: True only when figures were actually extracted.
        data: Extracted figures, or the all-zero placeholder.
        message: User-facing advisory message.
        status: 'extracted', 'no_api_key' or 'failed'.
    """

    success: bool
    data: FinancialRecord
    message: str
    status: ExtractionStatus

    @property
    def is_fallback(self) -> bool:
        return self.status != "extracted"


class ExtractionGuard:
    """
    Per-user in-flight guard for extraction requests.

    Without ``lock_dir`` the guard only sees requests made through the same
    instance. With ``lock_dir``, a running extraction also holds the file
    ``<lock_dir>/<user_id>.lock`` (created exclusively), so every process
    sharing that directory sees it. A lock file older than ``stale_after``
    seconds was left behind by a crashed process and is taken over.
    """

    def __init__(
        self,
        lock_dir: Optional[Path] = None,
        stale_after: float = STALE_LOCK_SECONDS,
    ) -> None:
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()
        self.lock_dir = Path(lock_dir) if lock_dir is not None else None
        self.stale_after = stale_after

    def _lock_path(self, user_id: str) -> Path:
        return self.lock_dir / f"{_UNSAFE_LOCK_CHARS.sub('_', user_id)}.lock"

    def _is_stale(self, path: Path) -> bool:
        try:
            age = time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return True
        return age > self.stale_after

    def _acquire_lock_file(self, user_id: str) -> bool:
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        path = self._lock_path(user_id)
        for _ in range(2):
            try:
                fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            except FileExistsError:
                if not self._is_stale(path):
                    return False
                logger.warning("Taking over stale extraction lock %s", path)
                path.unlink(missing_ok=True)
                continue
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(str(os.getpid()))
            return True
        return False

    def is_running(self, user_id: str) -> bool:
        with self._lock:
            if user_id in self._in_flight:
                return True
        if self.lock_dir is None:
            return False
        return not self._is_stale(self._lock_path(user_id))

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self._lock:
            busy = user_id in self._in_flight or (
                self.lock_dir is not None and not self._acquire_lock_file(user_id)
            )
            if busy:
                raise ExtractionInProgressError(
                    "A document is already being analyzed. Please wait for the "
                    "current analysis to finish."
                )
            self._in_flight.add(user_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(user_id)
                if self.lock_dir is not None:
                    self._lock_path(user_id).unlink(missing_ok=True)


def placeholder_record(notes: str) -> FinancialRecord:
    """All-zero record for the current year, used when extraction did not happen."""
    return FinancialRecord(
        year=date.today().year,
        revenue=0.0,
        fixed_costs=0.0,
        variable_costs=0.0,
        payroll=0.0,
        cash_flow=0.0,
        notes=notes,
    )


def parse_extraction_response(content: str) -> FinancialRecord:
    """
    Parse the first JSON object found in a model answer.

    Raises:
        ValueError: if no JSON object is found, the JSON is invalid, or the
            figures are not numeric (InvalidInputError is a ValueError).
    """
    match = _JSON_OBJECT.search(content or "")
    if match is None:
        raise ValueError("No JSON object found in the model response.")

    # The greedy match may run past the first object; raw_decode stops there.
    decoder = json.JSONDecoder()
    try:
        payload, _ = decoder.raw_decode(match.group(0))
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON in the model response.") from exc

    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object in the model response.")

    return financial_record_from_mapping(payload)


def _build_messages(filename: str, encoded_pdf: str) -> list[dict[str, Any]]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": EXTRACTION_PROMPT},
                {
                    "type": "file",
                    "file": {
                        "filename": filename,
                        "file_data": f"data:application/pdf;base64,{encoded_pdf}",
                    },
                },
            ],
        }
    ]


def analyze_document(
    store: ObjectStore,
    file_path: str,
    settings: ExtractionConfig,
    client: Optional[OpenAI] = None,
) -> ExtractionResult:
    """
    Extract financial figures from a stored PDF.

    Args:
        store: Object store holding the uploaded file.
        file_path: Object path returned by ``ObjectStore.upload``.
        settings: Extraction settings (model, key variable, limits).
        client: Optional pre-built OpenAI client (tests, custom endpoints).

    Returns:
        An ExtractionResult. This function does not raise for extraction
        problems: they are converted into a placeholder result.
    """
    if client is None:
        api_key = settings.api_key
        if api_key is None:
            logger.warning(
                "%s is not set; skipping automatic analysis of %s",
                settings.api_key_env,
                file_path,
            )
            return ExtractionResult(
                success=False,
                data=placeholder_record(NOTES_NO_API_KEY),
                message=MESSAGE_NO_API_KEY,
                status="no_api_key",
            )
        client = OpenAI(api_key=api_key, timeout=settings.timeout_seconds)

    try:
        content = store.download(file_path)
        encoded = base64.b64encode(content).decode("ascii")

        response = client.chat.completions.create(
            model=settings.model,
            messages=_build_messages(file_path.rsplit("/", 1)[-1], encoded),
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
        answer = (response.choices[0].message.content or "").strip()
        record = parse_extraction_response(answer)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Automatic analysis of %s failed: %s", file_path, exc)
        return ExtractionResult(
            success=False,
            data=placeholder_record(NOTES_FAILED),
            message=MESSAGE_FAILED,
            status="failed",
        )

    return ExtractionResult(
        success=True,
        data=record,
        message=MESSAGE_EXTRACTED,
        status="extracted",
    )
