from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import PyJWTError

from medinexa.core.security import decode_access_token

bearer_scheme = HTTPBearer()

PATIENT_ROLE = "patient"
CLINIC_ROLE = "clinic"

@dataclass
class Identity:
    account_id: str
    role: str
    name: Optional[str] = None

async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Identity:
    # Tokens are issued by the external auth service; we only verify them
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(credentials.credentials)
    except PyJWTError:
        raise credentials_exception

    account_id = payload.get("sub")
    role = payload.get("role")
    if account_id is None or role not in (PATIENT_ROLE, CLINIC_ROLE):
        raise credentials_exception
    return Identity(account_id=account_id, role=role, name=payload.get("name"))

async def require_patient(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != PATIENT_ROLE:
        raise HTTPException(status_code=403, detail="Patient account required")
    return identity

async def require_clinic(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != CLINIC_ROLE:
        raise HTTPException(status_code=403, detail="Clinic account required")
    return identity
