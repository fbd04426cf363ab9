"""
Kie.ai market jobs API: submit a generation task, poll it, fetch its outputs.

Used for Seedream side-angle synthesis and Kling video synthesis. There is no
retry here; any HTTP error or a failed task raises.
"""

import asyncio
import json
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

KIE_API_BASE = "https://api.kie.ai/api/v1"

POLL_INTERVAL = 5  # seconds
MAX_POLL_ATTEMPTS = 120  # 10 minutes max

SUCCESS_STATES = {"success"}
FAILED_STATES = {"fail", "failed"}


class KieClient:
    def __init__(
        self,
        api_key: str,
        poll_interval: float = POLL_INTERVAL,
        max_poll_attempts: int = MAX_POLL_ATTEMPTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def create_task(self, model: str, task_input: dict) -> str:
        """Submit a job and return its task id."""
        if not self.api_key:
            raise RuntimeError("KIE_API_KEY not set")

        async with self._client(30) as client:
            resp = await client.post(
                f"{KIE_API_BASE}/jobs/createTask",
                headers=self._headers(),
                json={"model": model, "input": task_input},
            )
            resp.raise_for_status()
            result = resp.json()

        data = result.get("data") or {}
        task_id = data.get("taskId") or data.get("task_id")
        if not task_id:
            raise RuntimeError(f"Kie.ai submit failed, no taskId: {result}")

        logger.info(f"Kie.ai task submitted: model={model} task_id={task_id}")
        return task_id

    async def wait_for_result_urls(self, task_id: str) -> list[str]:
        """Poll until the task finishes; return its result URLs."""
        for attempt in range(self.max_poll_attempts):
            await asyncio.sleep(self.poll_interval)

            async with self._client(15) as client:
                resp = await client.get(
                    f"{KIE_API_BASE}/jobs/recordInfo",
                    headers=self._headers(),
                    params={"taskId": task_id},
                )
                resp.raise_for_status()
                record = resp.json().get("data") or {}

            state = (record.get("state") or "").lower()
            logger.info(f"Kie.ai poll #{attempt + 1} task={task_id}: state={state}")

            if state in SUCCESS_STATES:
                urls = _result_urls(record)
                if not urls:
                    raise RuntimeError(f"Kie.ai task {task_id} succeeded but returned no outputs")
                return urls

            if state in FAILED_STATES:
                reason = record.get("failMsg") or record.get("failCode") or "unknown error"
                raise RuntimeError(f"Kie.ai task {task_id} failed: {reason}")

        raise TimeoutError(
            f"Kie.ai task {task_id} timed out after {self.max_poll_attempts * self.poll_interval}s"
        )

    async def download(self, url: str) -> bytes:
        async with self._client(60) as client:
            resp = await client.get(url, follow_redirects=True)
            resp.raise_for_status()
            return resp.content

    async def run(self, model: str, task_input: dict) -> list[bytes]:
        """Submit, wait, and download every output of one job."""
        task_id = await self.create_task(model, task_input)
        urls = await self.wait_for_result_urls(task_id)
        return [await self.download(url) for url in urls]


def _result_urls(record: dict) -> list[str]:
    raw = record.get("resultJson") or "{}"
    try:
        parsed = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError:
        logger.warning(f"Kie.ai returned unparseable resultJson: {raw[:200]}")
        return []
    return list(parsed.get("resultUrls") or [])