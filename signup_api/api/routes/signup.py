"""Public signup endpoint. Admission is decided by the handler, not by middleware."""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from signup_api.schemas.http import SubmissionRequest, SubmissionResponse

router = APIRouter(tags=["signup"])

# every verb reaches the handler so it can answer 405 in its own shape
ROUTE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def to_http_response(result: SubmissionResponse) -> Response:
    if result.payload is None:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(status_code=result.status_code, content=dict(result.payload), headers=result.headers)


@router.api_route("/api/signup", methods=ROUTE_METHODS)
@router.api_route("/.netlify/functions/signup", methods=ROUTE_METHODS, include_in_schema=False)
async def signup(request: Request) -> Response:
    submission = SubmissionRequest(
        method=request.method,
        headers=dict(request.headers),
        body=await request.body(),
        query=dict(request.query_params),
    )
    handler = request.app.state.submission_handler
    result = await run_in_threadpool(handler.handle, submission)
    return to_http_response(result)
