from fastapi import APIRouter, Depends, Path, Request

from resumeai.api.v1.deps import get_controller, get_resume_service, raise_http_error
from resumeai.core.errors import PipelineError
from resumeai.core.rate_limit import rate_limit
from resumeai.core.security import get_owner_id
from resumeai.schemas.api import AnalysisDetailResponse, AnalyzeRequest, AnalyzeResponse
from resumeai.services.lifecycle import ResumeLifecycleController
from resumeai.services.resume_service import ResumeService

router = APIRouter()


@router.post("/ats/analyze", response_model=AnalyzeResponse)
@rate_limit()
async def analyze(
    request: Request,
    payload: AnalyzeRequest,
    owner_id: str = Depends(get_owner_id),
    controller: ResumeLifecycleController = Depends(get_controller),
):
    _ = request
    try:
        outcome = await controller.analyze(
            owner_id,
            job_description=payload.job_description,
            resume_id=payload.resume_id,
            resume_text=payload.resume_text,
            job_title=payload.job_title,
            company=payload.company,
        )
    except PipelineError as exc:
        raise_http_error(exc)
    return AnalyzeResponse.from_records(outcome.resume, outcome.analysis)


@router.get("/ats/analyses/{analysis_id}", response_model=AnalysisDetailResponse)
async def get_analysis(
    analysis_id: int = Path(ge=1),
    owner_id: str = Depends(get_owner_id),
    service: ResumeService = Depends(get_resume_service),
):
    try:
        analysis = service.get_analysis(owner_id, analysis_id)
    except PipelineError as exc:
        raise_http_error(exc)
    return AnalysisDetailResponse.from_record(analysis)
