from fastapi import APIRouter, Depends, File, HTTPException, Path, Request, UploadFile, status
from fastapi.responses import PlainTextResponse

from resumeai.api.v1.deps import get_controller, get_resume_service, raise_http_error
from resumeai.core.config import settings
from resumeai.core.errors import PipelineError
from resumeai.core.rate_limit import rate_limit
from resumeai.core.security import get_owner_id
from resumeai.schemas.api import (
    AnalysisHistoryResponse,
    AnalysisSummary,
    MessageResponse,
    OptimizeConfirmedRequest,
    OptimizeConfirmedResponse,
    OptimizeRequest,
    OptimizeResponse,
    ResumeCreateRequest,
    ResumeDetail,
    ResumeListResponse,
    ResumeStatsResponse,
    ResumeSummary,
    ResumeUpdateRequest,
    UploadResponse,
)
from resumeai.services.lifecycle import ResumeLifecycleController
from resumeai.services.resume_service import ResumeService
from resumeai.services.text_extractor import extract_resume_text

router = APIRouter()


@router.get("/resumes", response_model=ResumeListResponse)
async def list_resumes(
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    summaries = []
    for resume, latest in service.list_with_latest(owner_id):
        summaries.append(
            ResumeSummary(
                id=resume.id,
                title=resume.title,
                company=latest.company_name if latest else None,
                status=resume.status,
                overall_score=latest.overall_score if latest else 0,
                current_score=resume.current_score,
                delta=latest.delta if latest else 0,
                updated_at=resume.updated_at,
            )
        )
    return ResumeListResponse(resumes=summaries)


@router.get("/resumes/stats", response_model=ResumeStatsResponse)
async def resume_stats(
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    return ResumeStatsResponse(**service.stats(owner_id))


@router.post("/resumes", response_model=ResumeDetail, status_code=status.HTTP_201_CREATED)
async def create_resume(
    payload: ResumeCreateRequest,
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    try:
        resume = service.create(owner_id, title=payload.title, raw_text=payload.raw_text)
    except PipelineError as exc:
        raise_http_error(exc)
    return ResumeDetail.from_records(resume, [])


@router.post("/resumes/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_resume(
    file: UploadFile = File(...),
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    content = await file.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File is too large. Maximum size is 10 MB.",
        )
    filename = file.filename or "resume.txt"
    try:
        extracted = extract_resume_text(filename, content, file.content_type)
        resume = service.create_from_upload(owner_id, filename=filename, text=extracted.text)
    except PipelineError as exc:
        raise_http_error(exc)
    return UploadResponse(
        resume_id=resume.id,
        source_type=extracted.source_type,
        characters=len(resume.original_text),
    )


@router.get("/resumes/{resume_id}", response_model=ResumeDetail)
async def get_resume(
    resume_id: int = Path(ge=1),
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    try:
        resume = service.get(owner_id, resume_id)
        analyses = service.history(owner_id, resume_id, limit=3)
    except PipelineError as exc:
        raise_http_error(exc)
    return ResumeDetail.from_records(resume, analyses)


@router.get("/resumes/{resume_id}/analyses", response_model=AnalysisHistoryResponse)
async def resume_history(
    resume_id: int = Path(ge=1),
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    try:
        analyses = service.history(owner_id, resume_id)
    except PipelineError as exc:
        raise_http_error(exc)
    return AnalysisHistoryResponse(
        resume_id=resume_id,
        analyses=[AnalysisSummary.from_record(item) for item in analyses],
    )


@router.patch("/resumes/{resume_id}", response_model=ResumeDetail)
async def update_resume(
    payload: ResumeUpdateRequest,
    resume_id: int = Path(ge=1),
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    try:
        resume = service.update(owner_id, resume_id, title=payload.title, raw_text=payload.raw_text)
    except PipelineError as exc:
        raise_http_error(exc)
    return ResumeDetail.from_records(resume, [])


@router.delete("/resumes/{resume_id}", response_model=MessageResponse)
async def delete_resume(
    resume_id: int = Path(ge=1),
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    try:
        service.delete(owner_id, resume_id)
    except PipelineError as exc:
        raise_http_error(exc)
    return MessageResponse(message="Resume deleted")


@router.post("/resumes/{resume_id}/optimize", response_model=OptimizeResponse)
@rate_limit()
async def optimize_resume(
    request: Request,
    payload: OptimizeRequest,
    resume_id: int = Path(ge=1),
    owner_id: str = Depends(get_owner_id),
    controller: ResumeLifecycleController = Depends(get_controller),
):
    _ = request
    try:
        report = await controller.optimize(owner_id, resume_id, job_description=payload.job_description)
    except PipelineError as exc:
        raise_http_error(exc)
    return OptimizeResponse(
        resume_id=report.resume_id,
        offer_id=report.offer_id,
        overall_score=report.breakdown.overall_score,
        keyword_matches=report.breakdown.matched_keywords,
        missing_keywords=report.breakdown.missing_keywords,
        unconfirmed_skills=report.unconfirmed_skills,
        requires_confirmation=report.requires_confirmation,
    )


@router.post("/resumes/{resume_id}/optimize-confirmed", response_model=OptimizeConfirmedResponse)
@rate_limit()
async def optimize_resume_confirmed(
    request: Request,
    payload: OptimizeConfirmedRequest,
    resume_id: int = Path(ge=1),
    owner_id: str = Depends(get_owner_id),
    controller: ResumeLifecycleController = Depends(get_controller),
):
    _ = request
    try:
        outcome = await controller.optimize_confirmed(
            owner_id,
            resume_id,
            job_description=payload.job_description,
            confirmed_skills=payload.confirmed_skills,
            job_title=payload.job_title,
            company=payload.company,
        )
    except PipelineError as exc:
        raise_http_error(exc)
    analysis = outcome.analysis
    return OptimizeConfirmedResponse(
        resume_id=outcome.resume.id,
        analysis_id=analysis.id,
        status=outcome.resume.status,
        overall_score=analysis.overall_score,
        previous_score=analysis.previous_score,
        delta=analysis.delta,
        optimized_file_ref=outcome.resume.optimized_file_ref,
        keywords_found=analysis.matched_keywords,
        keywords_missing=analysis.missing_keywords,
        suggestions=analysis.suggestions,
    )


@router.get("/resumes/{resume_id}/export", response_class=PlainTextResponse)
async def export_resume(
    resume_id: int = Path(ge=1),
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    try:
        resume, content = service.export_text(owner_id, resume_id)
    except PipelineError as exc:
        raise_http_error(exc)
    filename = "_".join(resume.title.replace('"', "").split()) or f"resume-{resume.id}"
    if not filename.lower().endswith(".txt"):
        filename += ".txt"
    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
