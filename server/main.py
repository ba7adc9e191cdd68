# server/main.py

import config
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from api import auth, users
from core.errors import register_exception_handlers
from core.logging import setup_logging
from database import init_db


setup_logging(config.LOG_LEVEL)
init_db()

app = FastAPI(title="School Management API", dependencies=[Depends(auth.verify_app_key)])

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(users.router)


@app.get("/")
def welcome():
    return {"message": "Welcome"}
