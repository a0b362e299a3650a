import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from .api import payments, paystack, properties
from .auth import (
    authenticate_user,
    create_access_token,
    get_current_user,
    get_password_hash,
    require_role,
)
from .config import Settings, settings
from .db import engine, init_db
from .deps import get_settings
from .errors import PaymentError, payment_error_handler
from .logging_config import configure_logging
from .models import Role, User

logger = logging.getLogger(__name__)

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="PropertyHub")
app.state.settings = settings

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)
app.add_exception_handler(PaymentError, payment_error_handler)

app.include_router(paystack.router)
app.include_router(payments.router)
app.include_router(properties.router)


@app.on_event("startup")
def on_startup():
    init_db()
    missing = app.state.settings.missing()
    if missing:
        # the app still serves records; the payment handlers answer 500 until set
        logger.warning("payment handlers not configured, missing: %s", ", ".join(missing))
    # Ensure default admin exists for initial setup (password from env only)
    admin_pwd = app.state.settings.ADMIN_PASSWORD
    if admin_pwd:
        admin_user = app.state.settings.ADMIN_USER
        with Session(engine) as session:
            existing = session.exec(select(User).where(User.username == admin_user)).first()
            if not existing:
                session.add(
                    User(
                        username=admin_user,
                        password_hash=get_password_hash(admin_pwd),
                        role=Role.admin.value,
                    )
                )
                session.commit()
                logger.info("created admin user %s", admin_user)


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.post("/api/auth/token")
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    app_settings: Settings = Depends(get_settings),
):
    user = authenticate_user(form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect username or password")
    access_token = create_access_token({"sub": user.username}, app_settings.APP_SECRET_KEY)
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/api/users/me")
def read_users_me(current_user: User = Depends(get_current_user)):
    return {"username": current_user.username, "role": current_user.role}


@app.post("/api/users", dependencies=[Depends(require_role(Role.admin.value))])
def create_user(username: str, password: str, role: Role = Role.tenant, email: Optional[str] = None):
    with Session(engine) as session:
        existing = session.exec(select(User).where(User.username == username)).first()
        if existing:
            raise HTTPException(status_code=400, detail="User exists")
        user = User(
            username=username,
            password_hash=get_password_hash(password),
            role=role.value,
            email=email,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return {"id": user.id, "username": user.username, "role": user.role}
