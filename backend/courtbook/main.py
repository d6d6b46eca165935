from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import create_schema
from .domain.errors import ReservationError
from .routers import court, reservations
from .routers.reservations import http_status_for
from .utils.request_id import REQUEST_ID_HEADER, resolve_request_id, set_request_id


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if settings.create_schema:
        await create_schema(court_id=settings.court_id)
    yield


app = FastAPI(title="Court Booking API", lifespan=lifespan)


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def reservation_error_handler(_: Request, exc: ReservationError) -> JSONResponse:
    # Raised outside route bodies, e.g. an unconfigured store while opening a session.
    return JSONResponse(status_code=http_status_for(exc.kind), content={"detail": exc.as_dict()})


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.middleware("http")(request_id_middleware)
app.add_exception_handler(ReservationError, reservation_error_handler)
app.include_router(reservations.router)
app.include_router(court.router)
