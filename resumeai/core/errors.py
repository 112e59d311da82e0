from __future__ import annotations


class PipelineError(RuntimeError):
    status_code = 500
    code = "pipeline_error"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        if code:
            self.code = code


class InputValidationError(PipelineError):
    status_code = 400
    code = "invalid_input"


class ResumeNotFoundError(PipelineError):
    status_code = 404
    code = "resume_not_found"

    def __init__(self, message: str = "Resume not found", **kwargs):
        super().__init__(message, **kwargs)


class AnalysisNotFoundError(PipelineError):
    status_code = 404
    code = "analysis_not_found"

    def __init__(self, message: str = "Analysis not found", **kwargs):
        super().__init__(message, **kwargs)


class UnsupportedDocumentError(PipelineError):
    status_code = 415
    code = "unsupported_document"


class ConcurrentUpdateError(PipelineError):
    status_code = 409
    code = "concurrent_update"


class FabricatedSkillsError(PipelineError):
    status_code = 422
    code = "fabricated_skills"

    def __init__(self, terms: list[str]):
        self.terms = list(terms)
        super().__init__(
            "Rewrite claimed skills that are neither in the original resume nor confirmed: "
            + ", ".join(self.terms)
        )


class ReasonerUnavailable(PipelineError):
    status_code = 503
    code = "reasoner_unavailable"


class RecordStoreError(PipelineError):
    status_code = 500
    code = "record_store_error"


class RenderError(PipelineError):
    status_code = 500
    code = "render_failed"
