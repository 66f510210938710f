"""CSRF 보호 설정.

모든 환경 변수는 CSRF_ 접두사를 사용합니다 (예: CSRF_SECRET_KEY).
시크릿이 없거나 약하면 설정 생성 시점에 실패하므로 서비스가 시작되지 않습니다.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from csrf_guard.crypto import MIN_RANDOM_BYTES, MIN_SECRET_BYTES
from csrf_guard.origin import normalize_origin


class CSRFSettings(BaseSettings):
    """CSRF 토큰 및 출처 검증 설정."""

    # 환경 설정
    env: str = Field(default="development", description="Environment (development/production)")

    # HMAC 키 - 필수 (최소 32바이트)
    secret_key: SecretStr = Field(
        description="HMAC secret for anti-forgery tokens (required - set CSRF_SECRET_KEY)"
    )
    # 로테이션 중 검증에만 사용하는 이전 키 (최신 순)
    previous_secret_keys: list[SecretStr] = Field(
        default_factory=list, description="Previous secrets accepted during rotation"
    )

    token_random_bytes: int = Field(default=32, ge=MIN_RANDOM_BYTES)

    # 토큰 전달 위치
    header_names: list[str] = Field(default=["X-CSRF-Token", "X-XSRF-Token"])
    form_field_name: str | None = "csrf_token"
    cookie_name: str = "csrf_token"
    double_submit_cookie: bool = Field(
        default=False, description="Require the token cookie to match the submitted token"
    )
    presession_cookie_name: str | None = Field(
        default="csrf_presession", description="Cookie holding the pre-session nonce (login forms)"
    )

    # 검증 대상 요청
    safe_methods: list[str] = Field(default=["GET", "HEAD", "OPTIONS", "TRACE"])
    exempt_paths: list[str] = Field(default_factory=list)

    # 검증 계층
    check_token: bool = True
    check_origin: bool = True

    # 출처 검증
    trusted_origins: list[str] = Field(
        default_factory=list,
        description="Expected target origins (scheme://host[:port]); derived from Host when empty",
    )
    trust_forwarded_host: bool = Field(
        default=False, description="Honour X-Forwarded-Host/Proto from trusted proxies"
    )
    allow_missing_origin: bool = Field(
        default=False, description="Accept requests without Origin and Referer headers"
    )

    model_config = SettingsConfigDict(
        env_prefix="CSRF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_security(self):
        """
        시크릿 및 검증 계층 설정 검증

        1. 모든 시크릿은 최소 32바이트
        2. 토큰/출처 검증 중 하나 이상 활성화
        3. trusted_origins는 모두 정규화 가능해야 함
        4. 프로덕션: 약한 시크릿 금지, 출처 헤더 누락 허용 시 trusted_origins 필수
        """
        for secret in (self.secret_key, *self.previous_secret_keys):
            length = len(secret.get_secret_value().encode("utf-8"))
            if length < MIN_SECRET_BYTES:
                raise ValueError(
                    f"CSRF secret must be at least {MIN_SECRET_BYTES} bytes. "
                    f"Current length: {length} bytes. Generate a strong random secret."
                )

        if not self.check_token and not self.check_origin:
            raise ValueError("At least one of CSRF_CHECK_TOKEN and CSRF_CHECK_ORIGIN must be enabled")

        for origin in self.trusted_origins:
            if normalize_origin(origin) is None:
                raise ValueError(f"Invalid trusted origin: {origin!r}. Expected scheme://host[:port]")

        if self.env == "production":
            # 약한 기본값 또는 개발용 시크릿 사용 금지
            weak_patterns = ["dev-", "dev_", "test", "change", "secret", "password", "default"]
            # 로테이션 중 검증에 쓰이는 이전 키도 동일하게 검사
            for secret in (self.secret_key, *self.previous_secret_keys):
                value = secret.get_secret_value().lower()
                if any(pattern in value for pattern in weak_patterns):
                    raise ValueError(
                        "Production CSRF secret contains weak patterns (dev-, test, change, etc.). "
                        "Use a cryptographically secure random string"
                    )

            if self.allow_missing_origin and not self.trusted_origins:
                raise ValueError(
                    "Production cannot allow missing Origin headers without CSRF_TRUSTED_ORIGINS"
                )

        return self


@lru_cache
def get_settings() -> CSRFSettings:
    """환경 변수에서 로드한 설정 (프로세스당 1회)"""
    return CSRFSettings()
