#!/usr/bin/env python3

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from libris.routes import api
from libris.configs import OPTIONS, CORS_ORIGINS
from libris.core import db as database
from libris.core.exceptions import LibrisAPIError
from libris.core.realtime import feed
from libris import __version__ as VERSION

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Libris API",
    description="Libris: catalog, lending and fines for an institutional library",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api.router, prefix="/v1/api")

app.feed = feed.attach(database.SessionLocal)


@app.on_event("startup")
def startup():
    database.init()


@app.exception_handler(LibrisAPIError)
async def libris_error_handler(request: Request, exc: LibrisAPIError):
    return api.error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "validation_error", "message": message},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("libris.app:app", **OPTIONS)
