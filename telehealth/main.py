import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from telehealth.core import config
from telehealth.database import Base, engine, ensure_appointment_schema, ensure_doctor_schema
from telehealth.models import appointment, doctor, user  # noqa: F401
from telehealth.routes import appointment_routes, auth_routes, availability_routes, doctor_routes

config.validate_runtime_config()

app = FastAPI(title='Telehealth Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_doctor_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Telehealth API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(doctor_routes.router, prefix='/doctors')
app.include_router(appointment_routes.router, prefix='/appointments')
