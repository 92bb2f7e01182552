# file: main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import LOG_LEVEL
from app.controllers.admin import router as admin_router
from app.controllers.auth import router as auth_router
from app.controllers.books import router as books_router
from app.controllers.dashboard import router as dashboard_router
from app.controllers.issues import router as issues_router
from app.controllers.notification import router as notification_router
from app.controllers.students import router as students_router
from app.database.connection import init_db

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(_: FastAPI):
    await init_db()
    yield


app = FastAPI(title="BookZone API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(books_router, prefix="/api/books", tags=["books"])
app.include_router(students_router, prefix="/api/students", tags=["students"])
app.include_router(issues_router, prefix="/api/issues", tags=["issues"])
app.include_router(notification_router, prefix="/api/notifications", tags=["notifications"])
app.include_router(dashboard_router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(admin_router, prefix="/api/admin", tags=["admin"])


@app.get("/")
async def root():
    return {"message": "BookZone API is running"}
