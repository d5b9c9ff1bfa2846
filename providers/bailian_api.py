from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Optional

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .base import ObjectStore, TryOnOutcome

logger = logging.getLogger(__name__)

SYNTHESIS_URL = "https://dashscope.aliyuncs.com/api/v1/services/aigc/image2image/image-synthesis"
LEGACY_TRYON_URL = "https://dashscope.aliyuncs.com/api/v1/services/aigc/virtualtryon/virtual-try-on"
TASKS_URL = "https://dashscope.aliyuncs.com/api/v1/tasks"

TOP_CATEGORIES = {"top", "outerwear", "dress"}


class BailianAPIError(Exception):
    def __init__(self, message: str, code: str = "", status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    @property
    def is_parameter_error(self) -> bool:
        return "InvalidParameter" in self.code or "url" in self.message.lower()


def _object_key(filename: str) -> str:
    return f"tryon/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{filename}"


class BailianTryOn:
    """
    Aliyun Bailian (DashScope) AI try-on.
    - Hands images to the API as public URLs via object storage.
    - Submits asynchronously; the API answers with a task id (or, rarely, a result URL).
    - Falls back through alternative input layouts when the API rejects the garment fields.
    """

    name = "bailian"

    def __init__(self, store: Optional[ObjectStore] = None, api_key: Optional[str] = None) -> None:
        self.store = store
        self.api_key = api_key or os.environ.get("ALIYUN_BAILIAN_API_KEY")
        self.endpoint = os.environ.get("BAILIAN_API_ENDPOINT", SYNTHESIS_URL)
        self.legacy_endpoint = os.environ.get("BAILIAN_LEGACY_ENDPOINT", LEGACY_TRYON_URL)
        self.tasks_url = os.environ.get("BAILIAN_TASKS_URL", TASKS_URL).rstrip("/")
        self.timeout = float(os.environ.get("BAILIAN_TIMEOUT", "60"))

    def is_configured(self) -> bool:
        return bool(self.api_key) and self.store is not None and self.store.is_configured()

    def _headers(self, async_mode: bool = False) -> dict:
        if not self.api_key:
            raise BailianAPIError("DashScope API key not configured")
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        if async_mode:
            headers["X-DashScope-Async"] = "enable"
        return headers

    @staticmethod
    def _json(resp: requests.Response) -> dict:
        try:
            data = resp.json()
        except ValueError as e:
            raise BailianAPIError(f"Unexpected response from DashScope: HTTP {resp.status_code}", status_code=resp.status_code) from e
        if resp.status_code >= 400:
            data = data if isinstance(data, dict) else {}
            raise BailianAPIError(
                data.get("message") or f"DashScope error: HTTP {resp.status_code}",
                code=str(data.get("code") or ""),
                status_code=resp.status_code,
            )
        return data

    @retry(
        reraise=True,
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(requests.RequestException),
    )
    def _post(self, endpoint: str, payload: dict) -> dict:
        resp = requests.post(endpoint, headers=self._headers(async_mode=True), json=payload, timeout=self.timeout)
        return self._json(resp)

    @staticmethod
    def build_input(
        person_url: str,
        garment_url: Optional[str] = None,
        category: Optional[str] = None,
        top_url: Optional[str] = None,
        bottom_url: Optional[str] = None,
    ) -> dict:
        inp = {"person_image_url": person_url}
        if top_url:
            inp["top_garment_url"] = top_url
        if bottom_url:
            inp["bottom_garment_url"] = bottom_url
        if not top_url and not bottom_url and garment_url:
            as_top = not category or category in TOP_CATEGORIES
            inp["top_garment_url" if as_top else "bottom_garment_url"] = garment_url
        if len(inp) == 1:
            raise BailianAPIError("At least one garment image is required")
        return inp

    def submit_job(
        self,
        person_url: str,
        garment_url: Optional[str] = None,
        params: Optional[dict] = None,
        top_url: Optional[str] = None,
        bottom_url: Optional[str] = None,
    ) -> dict:
        params = dict(params or {})
        category = params.pop("category", None)
        parameters = {"resolution": -1, "restore_face": True}
        parameters.update(params)
        payload = {
            "model": "aitryon",
            "input": self.build_input(person_url, garment_url, category, top_url, bottom_url),
            "parameters": parameters,
        }
        try:
            data = self._post(self.endpoint, payload)
        except BailianAPIError as e:
            if not (e.is_parameter_error and garment_url):
                raise
            logger.warning("aitryon rejected top/bottom input (%s), retrying with garment_image_url", e.code or e.message)
            unified = {
                "model": "aitryon",
                "input": {"person_image_url": person_url, "garment_image_url": garment_url},
                "parameters": parameters,
            }
            try:
                data = self._post(self.endpoint, unified)
            except BailianAPIError as e2:
                if not e2.is_parameter_error:
                    raise
                logger.warning("aitryon rejected garment_image_url (%s), retrying legacy wanx-v1", e2.code or e2.message)
                legacy = {
                    "model": "wanx-v1",
                    "input": {"human_image_url": person_url, "cloth_image_url": garment_url},
                }
                data = self._post(self.legacy_endpoint, legacy)

        output = data.get("output") or {}
        if output.get("task_id"):
            return {"task_id": output["task_id"]}
        if output.get("image_url"):
            return {"result_url": output["image_url"]}
        raise BailianAPIError("Unexpected response format from DashScope")

    @retry(
        reraise=True,
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(requests.RequestException),
    )
    def poll_job(self, task_id: str) -> dict:
        resp = requests.get(f"{self.tasks_url}/{task_id}", headers=self._headers(), timeout=10)
        task = self._json(resp).get("output") or {}
        status = task.get("task_status")
        if status == "SUCCEEDED":
            results = task.get("results")
            url = task.get("image_url") or (results[0].get("url") if isinstance(results, list) and results else None)
            if not url:
                return {"status": "failed", "error": "Task succeeded but returned no image URL"}
            return {"status": "done", "result_url": url}
        if status == "FAILED":
            return {"status": "failed", "error": task.get("message") or "Task failed"}
        return {"status": "pending"}

    def try_on(
        self,
        person: bytes,
        garment: Optional[bytes],
        category: Optional[str] = None,
        top: Optional[bytes] = None,
        bottom: Optional[bytes] = None,
        mode: str = "separate",
    ) -> TryOnOutcome:
        if self.store is None or not self.store.is_configured():
            raise BailianAPIError("Object storage not configured")
        person_url = self.store.upload(person, _object_key("person.jpg"))
        garment_url = top_url = bottom_url = None
        if mode == "separate" and (top or bottom):
            if top:
                top_url = self.store.upload(top, _object_key("top.jpg"))
            if bottom:
                bottom_url = self.store.upload(bottom, _object_key("bottom.jpg"))
        elif garment:
            garment_url = self.store.upload(garment, _object_key("clothing.jpg"))
        else:
            raise BailianAPIError("Missing garment image")

        res = self.submit_job(person_url, garment_url, {"category": category}, top_url=top_url, bottom_url=bottom_url)
        if "task_id" in res:
            logger.info("try-on job submitted", extra={"provider": self.name, "task_id": res["task_id"]})
            return TryOnOutcome(status="processing", provider=self.name, task_id=res["task_id"])
        return TryOnOutcome(status="completed", provider=self.name, result_url=res["result_url"])

    def test_connection(self) -> dict:
        if not self.api_key:
            return {"success": False, "message": "Bailian API key not configured"}
        if self.store is None or not self.store.is_configured():
            return {"success": False, "message": "Object storage not configured"}
        return {"success": True, "message": "Configuration looks complete"}
