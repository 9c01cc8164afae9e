"""Calibration certificate workbench endpoints.

Uploaded PDFs are held in memory for the review session only. Selecting one
extracts its text; analysing it sends that text to Gemini and returns the
structured summary.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from ..core.config import AppSettings
from ..deps.state import get_app_settings, get_workbench
from ..schemas.certificate import AnalysisOut, CertificateFileOut, WorkbenchOut
from ..services.certificate_analyzer import AnalyzerNotConfigured, CertificateAnalysisError
from ..services.certificates import CertificateFile, CertificateWorkbench, analyze_selected, select_certificate
from ..services.pdf_text import PdfExtractionError

router = APIRouter(prefix="/api/v1/certificates", tags=["certificates"])

PDF_MEDIA_TYPE = "application/pdf"


def _is_pdf(upload: UploadFile) -> bool:
    return upload.content_type == PDF_MEDIA_TYPE or (upload.filename or "").lower().endswith(".pdf")


def _snapshot(workbench: CertificateWorkbench) -> WorkbenchOut:
    return WorkbenchOut(
        files=[CertificateFileOut(name=f.name, size=f.size) for f in workbench.files],
        selected=workbench.selected,
        text=workbench.text,
        analysis=workbench.analysis,
    )


@router.get("", response_model=WorkbenchOut)
async def list_certificates(workbench: CertificateWorkbench = Depends(get_workbench)):
    return _snapshot(workbench)


@router.post("", response_model=WorkbenchOut, status_code=status.HTTP_201_CREATED)
async def upload_certificates(
    files: list[UploadFile] = File(...),
    workbench: CertificateWorkbench = Depends(get_workbench),
):
    uploads = []
    for upload in files:
        if not _is_pdf(upload):
            continue
        uploads.append(CertificateFile(name=upload.filename or "certificate.pdf", data=await upload.read()))
    workbench.add_files(uploads)
    return _snapshot(workbench)


@router.post("/{name}/select", response_model=WorkbenchOut)
async def select(name: str, workbench: CertificateWorkbench = Depends(get_workbench)):
    try:
        await select_certificate(workbench, name)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown certificate") from exc
    except PdfExtractionError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _snapshot(workbench)


@router.post("/analyze", response_model=AnalysisOut)
async def analyze(
    workbench: CertificateWorkbench = Depends(get_workbench),
    settings: AppSettings = Depends(get_app_settings),
):
    if workbench.selected is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No certificate selected")
    if not workbench.text.strip():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="The selected certificate has no extracted text")
    certificate = workbench.selected
    try:
        analysis, applied = await analyze_selected(workbench, settings=settings)
    except AnalyzerNotConfigured as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except CertificateAnalysisError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return AnalysisOut(certificate=certificate, applied=applied, analysis=analysis)


@router.delete("", response_model=WorkbenchOut)
async def clear(workbench: CertificateWorkbench = Depends(get_workbench)):
    workbench.clear()
    return _snapshot(workbench)
