"""Certificate workbench: the PDFs queued for review and the current selection.

Text extraction and AI analysis finish asynchronously. Each selection bumps
``generation``; a result is only applied if the generation it was started
under is still current, so a slow answer for a certificate the user has
already moved away from never overwrites the newer selection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from starlette.concurrency import run_in_threadpool

from ..schemas.certificate import CertificateAnalysis
from .certificate_analyzer import analyze_certificate
from .pdf_text import extract_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CertificateFile:
    name: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


class CertificateWorkbench:
    def __init__(self) -> None:
        self.files: list[CertificateFile] = []
        self.selected: Optional[str] = None
        self.text: str = ""
        self.analysis: Optional[CertificateAnalysis] = None
        self.generation = 0

    def add_files(self, files: Iterable[CertificateFile]) -> list[CertificateFile]:
        added: list[CertificateFile] = []
        for candidate in files:
            if any(f.name == candidate.name and f.size == candidate.size for f in self.files):
                continue
            self.files.append(candidate)
            added.append(candidate)
        return added

    def get(self, name: str) -> CertificateFile | None:
        return next((f for f in self.files if f.name == name), None)

    def select(self, name: str) -> int:
        if self.get(name) is None:
            raise KeyError(name)
        self.generation += 1
        self.selected = name
        self.text = ""
        self.analysis = None
        return self.generation

    def apply_text(self, generation: int, text: str) -> bool:
        if generation != self.generation:
            logger.info("certificate.stale_text_dropped", extra={"extra_data": {"generation": generation}})
            return False
        self.text = text
        return True

    def apply_analysis(self, generation: int, analysis: CertificateAnalysis) -> bool:
        if generation != self.generation:
            logger.info("certificate.stale_analysis_dropped", extra={"extra_data": {"generation": generation}})
            return False
        self.analysis = analysis
        return True

    def clear(self) -> None:
        self.files = []
        self.selected = None
        self.text = ""
        self.analysis = None
        self.generation += 1


async def select_certificate(workbench: CertificateWorkbench, name: str) -> str:
    """Select ``name`` and extract its text off the event loop."""

    generation = workbench.select(name)
    certificate = workbench.get(name)
    text = await run_in_threadpool(extract_text, certificate.data)
    workbench.apply_text(generation, text)
    return text


async def analyze_selected(workbench: CertificateWorkbench, **analyzer_kwargs) -> tuple[CertificateAnalysis, bool]:
    """Analyze the selected certificate; the flag says whether the result was kept."""

    generation = workbench.generation
    analysis = await analyze_certificate(workbench.text, **analyzer_kwargs)
    return analysis, workbench.apply_analysis(generation, analysis)
