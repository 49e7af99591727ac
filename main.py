import json
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, UploadFile, File, status, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session, select
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from database import session as db_session
from database.session import create_db_and_tables, get_session
from database.models import Product, Sale, User
from schemas import (
    RegisterRequest, LoginRequest, LoginResponse, UserRead, UserList,
    ProductCreate, ProductUpdate, ProductRead, ProductList, ProductDeleted,
    SaleRequest, SaleRead, SaleList, StatsRead, ImportResult,
)
from services.auth_service import AuthService, DuplicateUsernameError, InvalidCredentialsError, TokenError
from services.stock_service import StockService
from services.backup_service import LegacyImportError, export_document, import_legacy_document, load_legacy_document
from utils.logger import get_logger

logger = get_logger(__name__)

# Setup
stock_service = StockService()
bearer_scheme = HTTPBearer(auto_error=False)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # On startup
    create_db_and_tables()
    with Session(db_session.engine) as session:
        AuthService.create_default_admin(session)
    if config.JWT_SECRET == config.DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set; using the development default")
    logger.info("Inventory API ready")
    yield

app = FastAPI(title="Inventory & POS API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Older clients read `error`; FastAPI clients read `detail`
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request, exc: StarletteHTTPException):
    return JSONResponse(
        {"detail": exc.detail, "error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )

# --- Dependencies ---

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

def _user_from_token(token: str, session: Session) -> User:
    try:
        payload = AuthService.decode_token(token)
    except TokenError:
        raise _unauthorized("Invalid token")
    user = session.get(User, payload["sub"])
    if not user:
        raise _unauthorized("Invalid token")
    return user

def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    if not credentials:
        raise _unauthorized("Missing token")
    return _user_from_token(credentials.credentials, session)

def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Optional[User]:
    if not credentials:
        return None
    try:
        return _user_from_token(credentials.credentials, session)
    except HTTPException:
        return None

def require_role(role: str):
    def checker(user: User = Depends(require_auth)) -> User:
        if user.role != role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user
    return checker

require_admin = require_role("admin")

# --- Root ---

@app.get("/")
def read_root():
    return {
        "message": "Inventory & POS API",
        "endpoints": ["/api/products", "/api/sales", "/api/stats", "/api/auth/login", "/api/auth/register"],
    }

@app.get("/health")
@app.head("/health")
def health_check():
    return {"status": "ok"}

# --- Auth Routes ---

@app.post("/api/auth/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, session: Session = Depends(get_session), current: Optional[User] = Depends(get_optional_user)):
    role = data.role or "staff"
    # Only an admin may hand out the admin role
    if role == "admin" and (current is None or current.role != "admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can create admin accounts")
    try:
        user = AuthService.register_user(session, data.username, data.password, role)
    except DuplicateUsernameError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UserRead.model_validate(user)

@app.post("/api/auth/login", response_model=LoginResponse)
def login(data: LoginRequest, session: Session = Depends(get_session)):
    try:
        user = AuthService.authenticate(session, data.username, data.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return LoginResponse(token=AuthService.create_access_token(user), user=UserRead.model_validate(user))

# --- Products ---

def _get_product_or_404(session: Session, id: str) -> Product:
    product = session.get(Product, id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product

def _ensure_sku_free(session: Session, sku: str, product_id: Optional[str] = None):
    existing = session.exec(select(Product).where(Product.sku == sku)).first()
    if existing and existing.id != product_id:
        raise HTTPException(status_code=400, detail="sku exists")

@app.get("/api/products", response_model=ProductList)
def get_products_api(session: Session = Depends(get_session)):
    products = session.exec(select(Product).order_by(Product.created_at)).all()
    return ProductList(products=[ProductRead.model_validate(p) for p in products])

@app.post("/api/products", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product_api(data: ProductCreate, session: Session = Depends(get_session), user: User = Depends(require_auth)):
    product = Product(
        name=data.name,
        category=data.category or "General",
        price=data.price,
        quantity=data.quantity,
        image_url=data.image_url or "",
    )
    if data.sku:
        _ensure_sku_free(session, data.sku)
        product.sku = data.sku

    session.add(product)
    session.commit()
    session.refresh(product)
    logger.info(f"Product {product.id} ({product.sku}) created by {user.username}")
    return ProductRead.model_validate(product)

@app.put("/api/products/{id}", response_model=ProductRead)
def update_product_api(id: str, data: ProductUpdate, session: Session = Depends(get_session), user: User = Depends(require_auth)):
    product = _get_product_or_404(session, id)
    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "sku" in updates:
        _ensure_sku_free(session, updates["sku"], product.id)

    for key, value in updates.items():
        setattr(product, key, value)

    session.add(product)
    session.commit()
    session.refresh(product)
    logger.info(f"Product {product.id} updated by {user.username}: {sorted(updates)}")
    return ProductRead.model_validate(product)

@app.delete("/api/products/{id}", response_model=ProductDeleted)
def delete_product_api(id: str, session: Session = Depends(get_session), user: User = Depends(require_auth)):
    product = _get_product_or_404(session, id)
    deleted = ProductRead.model_validate(product)
    # Past sales keep their own snapshot of the product
    session.delete(product)
    session.commit()
    logger.info(f"Product {id} deleted by {user.username}")
    return ProductDeleted(success=True, deleted=deleted)

# --- Sales ---

@app.post("/api/sales", response_model=SaleRead, status_code=status.HTTP_201_CREATED)
def create_sale_api(data: SaleRequest, session: Session = Depends(get_session), user: User = Depends(require_auth)):
    try:
        sale = stock_service.process_sale(
            session,
            user=user,
            items_data=[line.model_dump() for line in data.items],
        )
    except ValueError as e:
        logger.info(f"Sale rejected for {user.username}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return SaleRead.model_validate(sale)

@app.get("/api/sales", response_model=SaleList)
def get_sales_api(session: Session = Depends(get_session), user: User = Depends(require_auth)):
    sales = session.exec(select(Sale).order_by(Sale.created_at.desc())).all()
    return SaleList(sales=[SaleRead.model_validate(s) for s in sales])

@app.get("/api/sales/{id}", response_model=SaleRead)
def get_sale_api(id: str, session: Session = Depends(get_session), user: User = Depends(require_auth)):
    sale = session.get(Sale, id)
    if not sale:
        raise HTTPException(status_code=404, detail="Sale not found")
    return SaleRead.model_validate(sale)

# --- Stats ---

@app.get("/api/stats", response_model=StatsRead)
def get_stats_api(session: Session = Depends(get_session)):
    return stock_service.get_stats(session)

# --- Users (admin) ---

@app.get("/api/users", response_model=UserList)
def get_users(session: Session = Depends(get_session), user: User = Depends(require_admin)):
    users = session.exec(select(User).order_by(User.created_at)).all()
    return UserList(users=[UserRead.model_validate(u) for u in users])

# --- Backup / Legacy import ---

@app.get("/api/backup")
def download_backup(session: Session = Depends(get_session), user: User = Depends(require_admin)):
    data = export_document(session)
    json_str = json.dumps(data, indent=2)
    stamp = data["generatedAt"][:10].replace("-", "")
    logger.info(f"Backup exported by {user.username}")
    return Response(
        content=json_str,
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename=backup_{stamp}.json"},
    )

@app.post("/api/import/legacy", response_model=ImportResult)
async def import_legacy(file: UploadFile = File(...), session: Session = Depends(get_session), user: User = Depends(require_admin)):
    contents = await file.read()
    try:
        doc = load_legacy_document(contents)
    except LegacyImportError as e:
        logger.warning(f"Legacy import by {user.username} rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return import_legacy_document(session, doc)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT)
