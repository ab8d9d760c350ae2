"""
암호화 유틸리티
- Fernet 대칭 암호화 (연결 설정: 비밀번호, API 키 등)
- SECRET_KEY에서 PBKDF2로 Fernet 키 파생
"""
import base64
import json
import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.config import settings
from app.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


@lru_cache()
def get_fernet() -> Fernet:
    """SECRET_KEY에서 Fernet 키를 파생하여 반환합니다."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"nl-query-engine-salt",
        iterations=100_000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(settings.SECRET_KEY.encode()))
    return Fernet(key)


def encrypt_value(plaintext: str) -> str:
    """문자열을 Fernet으로 암호화하여 base64 문자열로 반환합니다."""
    f = get_fernet()
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """Fernet 암호화된 base64 문자열을 복호화합니다."""
    f = get_fernet()
    return f.decrypt(ciphertext.encode()).decode()


def encrypt_config(config: dict) -> str:
    """연결 설정 dict 전체를 JSON 직렬화 후 암호화합니다."""
    return encrypt_value(json.dumps(config, ensure_ascii=False))


def decrypt_config(ciphertext: str) -> dict:
    """암호화된 연결 설정을 dict로 복원합니다. 키가 바뀌었거나 손상된 경우 ConfigurationError."""
    try:
        return json.loads(decrypt_value(ciphertext))
    except InvalidToken as e:
        logger.error("[CRYPTO] connection config decryption failed (SECRET_KEY changed?)")
        raise ConfigurationError("연결 설정을 복호화할 수 없습니다. SECRET_KEY를 확인하세요.") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"연결 설정 형식이 올바르지 않습니다: {e}") from e
