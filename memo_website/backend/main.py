import contextlib
import logging
import os
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Config
from .domain import MemoAppError
from .errors import for_app_error, for_status, internal_error
from .models import (
    ErrorResponse, LoginRequest, LoginResponse, MemoCreate, MemoOut, MemoUpdate, MessageResponse,
    PasswordCheckRequest, PasswordStrengthOut, RegisterRequest, RegisterResponse, UserOut,
)
from .passwords import password_strength
from .services import AuthService, Database, MemoService, Storage
from .utils import setup_logging, time_now

logger = logging.getLogger(__name__)

# Documented error bodies for the session-guarded routes
GUARDED_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def session_token(request: Request, authorization: Optional[str] = Header(None)) -> Optional[str]:
    """The session token from the Authorization header, falling back to the session cookie."""
    if authorization:
        return authorization
    return request.cookies.get(Config.SESSION_COOKIE_NAME)


def get_current_user(request: Request, token: Optional[str] = Depends(session_token)) -> str:
    """Resolve the caller's user id. Raises AuthError (401) when there is no valid session."""
    return request.app.state.auth.validate(token)


def get_auth(request: Request) -> AuthService:
    return request.app.state.auth


def get_memos(request: Request) -> MemoService:
    return request.app.state.memos


def create_app(db_path: Optional[str] = None, clock: Optional[Callable[[], str]] = None) -> FastAPI:
    """
    Build the API with its own database and services.

    Args:
        db_path (str): SQLite file, defaults to Config.DB_PATH
        clock (callable): Timestamp source for memo times, defaults to utils.time_now
    """
    db = Database(db_path or Config.DB_PATH)
    auth = AuthService(db)
    memos = MemoService(Storage(db), clock or time_now)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(Config.LOG_LEVEL)
        auth.purge_expired()
        counts = auth.counts()
        logger.info("Memo API starting: db=%s users=%d sessions=%d",
                    db.db_path, counts["users"], counts["sessions"])
        yield
        logger.info("Memo API shutting down")

    app = FastAPI(
        title="Memo API",
        description="Personal memos with user accounts and server-side sessions",
        version=Config.VERSION,
        lifespan=lifespan,
    )
    app.state.db = db
    app.state.auth = auth
    app.state.memos = memos

    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ORIGINS,
        allow_credentials="*" not in Config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    website_dir = Config.WEBSITE_DIR
    if website_dir and os.path.isdir(website_dir):
        app.mount("/static", StaticFiles(directory=website_dir), name="static")

    @app.exception_handler(MemoAppError)
    async def app_error_handler(request: Request, exc: MemoAppError):
        return for_app_error(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return for_status(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        else:
            message = "Invalid request"
        return for_status(400, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return internal_error()

    @app.get("/")
    async def read_root():
        index_path = os.path.join(website_dir, "index.html") if website_dir else ""
        if index_path and os.path.exists(index_path):
            return FileResponse(index_path)
        return {"message": "Memo API is running", "version": Config.VERSION}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "timestamp": time_now()}

    # -------------------------------
    # Authentication
    # -------------------------------

    @app.post("/auth/register", response_model=RegisterResponse, status_code=201)
    def register(creds: RegisterRequest, auth: AuthService = Depends(get_auth)):
        user = auth.register(creds.email, creds.password, creds.name, creds.nickname)
        return RegisterResponse(
            success=True,
            user=UserOut(**user.to_dict()),
            passwordStrength=PasswordStrengthOut(**password_strength(creds.password).to_dict()),
        )

    @app.post("/auth/login", response_model=LoginResponse)
    def login(creds: LoginRequest, response: Response, auth: AuthService = Depends(get_auth)):
        token = auth.login(creds.email, creds.password)
        user = auth.get_user(auth.validate(token))
        response.set_cookie(
            Config.SESSION_COOKIE_NAME,
            token,
            max_age=int(auth.session_ttl_hours * 3600),
            httponly=True,
            samesite="lax",
            secure=Config.SESSION_COOKIE_SECURE,
        )
        return LoginResponse(success=True, token=token, user=UserOut(**user.to_dict()))

    @app.post("/auth/logout", response_model=MessageResponse)
    def logout(response: Response, token: Optional[str] = Depends(session_token),
               auth: AuthService = Depends(get_auth)):
        auth.validate(token)
        auth.logout(token)
        response.delete_cookie(Config.SESSION_COOKIE_NAME)
        return MessageResponse(success=True, message="Logged out successfully")

    @app.get("/auth/me", response_model=UserOut)
    def me(user_id: str = Depends(get_current_user), auth: AuthService = Depends(get_auth)):
        return UserOut(**auth.get_user(user_id).to_dict())

    @app.post("/auth/password-strength", response_model=PasswordStrengthOut)
    async def check_password(body: PasswordCheckRequest):
        """Advisory feedback for sign-up forms; never blocks anything."""
        return PasswordStrengthOut(**password_strength(body.password).to_dict())

    # -------------------------------
    # Memos
    # -------------------------------

    @app.get("/api/memos", response_model=List[MemoOut], responses=GUARDED_ERRORS)
    def list_memos(user_id: str = Depends(get_current_user), memos: MemoService = Depends(get_memos)):
        return [memo.to_dict() for memo in memos.list_memos(user_id)]

    @app.post("/api/memos", response_model=MemoOut, status_code=201, responses=GUARDED_ERRORS)
    def create_memo(body: MemoCreate, user_id: str = Depends(get_current_user),
                    memos: MemoService = Depends(get_memos)):
        return memos.create_memo(user_id, body.title, body.content).to_dict()

    @app.get("/api/memos/{memo_id}", response_model=MemoOut, responses=GUARDED_ERRORS)
    def get_memo(memo_id: str, user_id: str = Depends(get_current_user),
                 memos: MemoService = Depends(get_memos)):
        return memos.get_memo(user_id, memo_id).to_dict()

    @app.put("/api/memos/{memo_id}", response_model=MemoOut, responses=GUARDED_ERRORS)
    def update_memo(memo_id: str, body: MemoUpdate, user_id: str = Depends(get_current_user),
                    memos: MemoService = Depends(get_memos)):
        return memos.update_memo(user_id, memo_id, body.title, body.content).to_dict()

    @app.delete("/api/memos/{memo_id}", responses=GUARDED_ERRORS)
    def delete_memo(memo_id: str, user_id: str = Depends(get_current_user),
                    memos: MemoService = Depends(get_memos)):
        memos.delete_memo(user_id, memo_id)
        return {"message": "Memo deleted successfully"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    setup_logging(Config.LOG_LEVEL)
    uvicorn.run(app, host=Config.HOST, port=Config.PORT)
