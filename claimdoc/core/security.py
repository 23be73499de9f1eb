"""
Security and authentication
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fastapi import HTTPException, status, Request
from fastapi.security.utils import get_authorization_scheme_param
from cryptography.fernet import Fernet
from slowapi import Limiter
from slowapi.util import get_remote_address
from claimdoc.config import settings
from claimdoc.core.logging import get_logger

logger = get_logger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


class SecurityManager:
    """Central security management"""

    def __init__(self):
        self.secret_key = settings.api_secret_key
        self.algorithm = settings.token_algorithm
        self.allowed_api_keys = list(settings.api_keys)

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Creates a JWT access token"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Verifies a JWT token"""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            return None

    def hash_api_key(self, api_key: str) -> str:
        """Short hash of an API key for audit logging"""
        return hashlib.sha256(api_key.encode()).hexdigest()[:16]

    def generate_request_id(self) -> str:
        """Generates a unique request ID"""
        return secrets.token_urlsafe(16)

    def validate_api_key(self, api_key: str) -> bool:
        """
        Validates an API key. With no keys configured any non-empty key is
        accepted (local development).
        """
        if not api_key or not api_key.strip():
            return False
        if not self.allowed_api_keys:
            return True
        return any(secrets.compare_digest(api_key, allowed) for allowed in self.allowed_api_keys)


security_manager = SecurityManager()


async def get_current_user(request: Request) -> Dict[str, Any]:
    """
    Dependency for authenticated requests.
    Accepts a JWT bearer token or an X-API-Key header.
    """

    auth_header = request.headers.get("Authorization")
    if auth_header:
        scheme, credentials = get_authorization_scheme_param(auth_header)
        if scheme.lower() == "bearer":
            token_payload = security_manager.verify_token(credentials)
            if token_payload:
                logger.info(f"Authenticated via JWT for subject: {token_payload.get('sub')}")
                return token_payload

    api_key = request.headers.get("X-API-Key")
    if api_key:
        if security_manager.validate_api_key(api_key):
            key_hash = security_manager.hash_api_key(api_key)
            logger.info(f"Authenticated via API Key with hash: {key_hash}")
            return {"sub": f"api_key_{key_hash}", "auth_type": "api_key"}

    logger.warning("Authentication failed: No valid Bearer token or API key provided.")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


class DataEncryption:
    """Encryption-at-rest for temporary audio using Fernet."""

    def __init__(self, key: Optional[str]):
        if not key:
            # Temp files never outlive the request that wrote them
            logger.warning("DATA_ENCRYPTION_KEY not set; using an ephemeral key for this process.")
            key = Fernet.generate_key().decode()
        self.fernet = Fernet(key.encode())

    def encrypt_data(self, data: bytes) -> bytes:
        return self.fernet.encrypt(data)

    def decrypt_data(self, encrypted_data: bytes) -> bytes:
        return self.fernet.decrypt(encrypted_data)


data_encryption = DataEncryption(settings.data_encryption_key)
