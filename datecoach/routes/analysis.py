"""
analysis.py
-----------
Purpose:
    Backend analysis endpoints called by the broker and the photo screens.

    - POST /api/analysis          generic analysis (profile, conversation, photo, compatibility, page)
    - POST /api/photo-analysis    enhanced dual-provider photo analysis

Both require a Supabase Auth JWT via `auth_dependency`.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from datecoach.auth.verify import auth_dependency
from datecoach.infrastructure.observability.logging import get_logger
from datecoach.models.api.analysis_request import AnalysisApiRequest, PhotoAnalysisApiRequest
from datecoach.models.api.analysis_response import (
    AnalysisResponse,
    ErrorDetail,
    ErrorResponse,
    PhotoAnalysisApiResponse,
    PhotoAnalysisData,
)
from datecoach.services.analysis_service import AnalysisRequestService
from datecoach.services.photo_analysis_service import (
    InvalidImageError,
    PhotoAnalysisError,
    PhotoAnalysisService,
)

router = APIRouter(prefix="/api", tags=["analysis"])
logger = get_logger(__name__)


def get_analysis_service(request: Request) -> AnalysisRequestService:
    return request.app.state.analysis_service


def get_photo_analysis_service(request: Request) -> PhotoAnalysisService:
    return request.app.state.photo_analysis_service


def _user_id(claims: dict) -> str:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user_id


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post("/analysis", response_model=AnalysisResponse, response_model_exclude_none=True)
async def analyze(
    body: AnalysisApiRequest,
    claims: dict = Depends(auth_dependency),
    service: AnalysisRequestService = Depends(get_analysis_service),
):
    if body.user_id != _user_id(claims):
        logger.warning("Analysis user does not match token", token_sub=claims.get("sub"))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not authenticated")

    return await service.handle(
        body.user_id,
        body.request_type.value,
        body.data,
        body.options.model_dump(mode="json"),
    )


@router.post("/photo-analysis", response_model=PhotoAnalysisApiResponse)
async def photo_analysis(
    body: PhotoAnalysisApiRequest,
    claims: dict = Depends(auth_dependency),
    service: PhotoAnalysisService = Depends(get_photo_analysis_service),
):
    user_id = _user_id(claims)

    try:
        outcome = await service.analyze(
            user_id,
            body.image_data,
            file_name=body.file_name,
            analysis_type=body.analysis_type,
            preferred_provider=body.preferred_provider,
            image_url=body.image_url,
        )
    except InvalidImageError as e:
        return _error(status.HTTP_400_BAD_REQUEST, e.code, str(e))
    except PhotoAnalysisError as e:
        logger.error("Photo analysis failed", user_id=user_id, analysis_id=e.analysis_id, error=str(e))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e.code, str(e))

    return PhotoAnalysisApiResponse(
        data=PhotoAnalysisData(
            analysis_id=outcome.analysis_id,
            image_url=outcome.image_url,
            analysis=outcome.analysis,
            processing_time_ms=outcome.processing_time_ms,
            ai_provider_used=outcome.ai_provider_used,
        )
    )
