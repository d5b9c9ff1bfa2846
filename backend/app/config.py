import os
import yaml
from typing import Any


CONFIG_PATH = os.environ.get("WARDROBE_CONFIG", "configs/wardrobe.yaml")


class Settings:
    def __init__(self, path: str = CONFIG_PATH) -> None:
        self._cfg: dict[str, Any] = {}
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                self._cfg = yaml.safe_load(f) or {}

    def get(self, key: str, default: Any = None) -> Any:
        # Env wins over YAML
        env_key = key.upper().replace(".", "_")
        if env_key in os.environ:
            return os.environ[env_key]

        # Dot path lookup in YAML
        parts = key.split(".")
        cur: Any = self._cfg
        for p in parts:
            if isinstance(cur, dict) and p in cur:
                cur = cur[p]
            else:
                return default
        return cur

    def get_bool(self, key: str, default: bool = False) -> bool:
        v = self.get(key, default)
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)

    def public(self) -> dict:
        """Non-secret view of the configuration for the /api/config endpoint."""
        return {
            "tryon_provider": str(self.get("tryon.provider", "local")),
            "fallback_enabled": self.get_bool("tryon.fallback", True),
            "storage_backend": os.environ.get("STORAGE_BACKEND", "local"),
            "bucket": os.environ.get("S3_BUCKET", ""),
            "region": os.environ.get("S3_REGION", ""),
            "has_api_key": bool(os.environ.get("ALIYUN_BAILIAN_API_KEY")),
            "has_access_key": bool(os.environ.get("S3_ACCESS_KEY_ID")),
        }


settings = Settings()
