from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from ...dependencies import get_db
from ...security.auth import (
    create_access_token, get_password_hash, verify_password, get_current_user, require_role,
    ROLES_CONTABLES, ROLES_OPERATIVOS,
)
from ...domain.models import User, Company
from ...domain.enums import UserRole
from ...config import settings
from ...infrastructure.logging_config import get_logger

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger("auth")

class UserIn(BaseModel):
    username: str
    password: str
    role: str = UserRole.OPERADOR.value
    nombre: str | None = None
    correo: str | None = None
    company_ids: list[int] = []

class UserOut(BaseModel):
    id: int
    username: str
    role: str
    nombre: str | None = None
    correo: str | None = None
    active: bool
    company_ids: list[int]


@router.post("/login")
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    Endpoint de autenticación.

    En desarrollo, permite crear usuario admin automáticamente si no existe.
    En producción, requiere que el usuario ya exista.
    """
    user = db.query(User).filter(User.username == form_data.username).first()
    if not user:
        # Solo permitir bootstrap admin en desarrollo
        if settings.is_dev and form_data.username == settings.admin_user and form_data.password == settings.admin_pass:
            user = User(
                username=settings.admin_user,
                password_hash=get_password_hash(settings.admin_pass),
                role=UserRole.ADMINISTRADOR.value,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.warning(f"Usuario administrador '{user.username}' creado en modo desarrollo")
        else:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Usuario/clave inválidos"
            )

    if not user.active or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuario/clave inválidos"
        )

    token = create_access_token({"sub": user.username, "role": user.role})
    logger.info(f"Login exitoso: {user.username}")
    return {"access_token": token, "token_type": "bearer"}

@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {
        "id": current_user.id,
        "username": current_user.username,
        "role": current_user.role,
        "nombre": current_user.nombre,
        "correo": current_user.correo,
        "permisos": {
            "contabilizar": current_user.role in ROLES_CONTABLES,
            "operar": current_user.role in ROLES_OPERATIVOS,
        },
        "companies": [{"id": c.id, "name": c.name, "rut": c.rut, "active": c.active} for c in current_user.companies]
    }

@router.post("/users", response_model=UserOut)
def create_user(payload: UserIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Alta de usuario con su rol y las empresas en las que puede operar."""
    require_role(current_user, (UserRole.ADMINISTRADOR.value,), "crear usuarios")
    try:
        role = UserRole(payload.role).value
    except ValueError:
        raise HTTPException(400, detail=f"Rol inválido: {payload.role}")
    if db.query(User).filter(User.username == payload.username).first():
        raise HTTPException(400, detail="El usuario ya existe")
    companies = db.query(Company).filter(Company.id.in_(payload.company_ids)).all() if payload.company_ids else []
    if len(companies) != len(set(payload.company_ids)):
        raise HTTPException(404, detail="Empresa no encontrada")

    user = User(
        username=payload.username,
        password_hash=get_password_hash(payload.password),
        role=role,
        nombre=payload.nombre,
        correo=payload.correo,
    )
    user.companies.extend(companies)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Usuario {user.username} ({role}) creado por {current_user.username}")
    return UserOut(
        id=user.id, username=user.username, role=user.role, nombre=user.nombre, correo=user.correo,
        active=user.active, company_ids=[c.id for c in user.companies],
    )
