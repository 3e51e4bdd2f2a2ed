import logging
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Protocol
from urllib.parse import quote

from fastapi.concurrency import run_in_threadpool

from relay_api.adapter.client.http import post_file, put_bytes
from relay_api.config import Settings

logger = logging.getLogger("relay.upload")

OCTET_STREAM = "application/octet-stream"
MIME_BY_EXTENSION = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/m4a",
}
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


@dataclass(frozen=True)
class RelayedFile:
    original_name: str
    safe_name: str
    mime_type: str
    content: bytes


@dataclass(frozen=True)
class UploadAttemptResult:
    succeeded: bool
    host_label: str
    url: str | None = None
    is_public: bool = False


class TimestampSource:
    """Millisecond clock that never returns the same value twice in one process."""

    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._last = 0
        self._lock = Lock()

    def next_ms(self) -> int:
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return self._last


timestamps = TimestampSource()


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def resolve_mime(declared: str | None, filename: str) -> str:
    if declared and declared != OCTET_STREAM:
        return declared
    extension = filename.rsplit(".", 1)[-1].lower()
    return MIME_BY_EXTENSION.get(extension, OCTET_STREAM)


def build_relayed_file(
    content: bytes,
    filename: str | None,
    content_type: str | None,
    clock: TimestampSource = timestamps,
) -> RelayedFile:
    stamp = clock.next_ms()
    original = filename or f"audio_{stamp}.wav"
    return RelayedFile(
        original_name=original,
        safe_name=f"{stamp}_{sanitize_filename(original)}",
        mime_type=resolve_mime(content_type, original),
        content=content,
    )


class UploadStrategy(Protocol):
    label: str

    async def attempt(self, file: RelayedFile) -> UploadAttemptResult: ...


@dataclass(frozen=True)
class TransferShStrategy:
    base_url: str
    timeout_s: float = 30.0
    label: str = "transfer.sh"

    async def attempt(self, file: RelayedFile) -> UploadAttemptResult:
        upload_url = f"{self.base_url.rstrip('/')}/{quote(file.safe_name)}"
        logger.info("try %s: %s mime=%s", self.label, upload_url, file.mime_type)
        try:
            response = await put_bytes(upload_url, file.content, file.mime_type, timeout_s=self.timeout_s)
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s failed: %r", self.label, exc)
            return UploadAttemptResult(succeeded=False, host_label=self.label)

        public_url = response.text.strip() or upload_url
        logger.info("%s ok: %s", self.label, public_url)
        return UploadAttemptResult(succeeded=True, host_label=self.label, url=public_url, is_public=True)


@dataclass(frozen=True)
class ZeroXZeroStrategy:
    base_url: str
    timeout_s: float = 30.0
    label: str = "0x0.st"

    async def attempt(self, file: RelayedFile) -> UploadAttemptResult:
        logger.info("try %s fallback", self.label)
        try:
            response = await post_file(
                self.base_url,
                "file",
                file.safe_name,
                file.content,
                file.mime_type,
                timeout_s=self.timeout_s,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s failed: %r", self.label, exc)
            return UploadAttemptResult(succeeded=False, host_label=self.label)

        text = response.text.strip()
        if not text.startswith("http"):
            logger.warning("%s returned non-url: %s", self.label, text[:200])
            return UploadAttemptResult(succeeded=False, host_label=self.label)

        logger.info("%s ok: %s", self.label, text)
        return UploadAttemptResult(succeeded=True, host_label=self.label, url=text, is_public=True)


@dataclass(frozen=True)
class LocalDiskStrategy:
    uploads_dir: Path
    base_url: str
    label: str = "local"

    async def attempt(self, file: RelayedFile) -> UploadAttemptResult:
        # Disk faults propagate; this is the last step of the chain.
        await run_in_threadpool(self._write, file)
        local_url = f"{self.base_url.rstrip('/')}/uploads/{quote(file.safe_name)}"
        logger.info("fallback local url: %s", local_url)
        return UploadAttemptResult(succeeded=True, host_label=self.label, url=local_url, is_public=False)

    def _write(self, file: RelayedFile) -> None:
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        (self.uploads_dir / file.safe_name).write_bytes(file.content)


def default_strategies(settings: Settings) -> list[UploadStrategy]:
    return [
        TransferShStrategy(settings.transfer_sh_url, timeout_s=settings.upstream_timeout_s),
        ZeroXZeroStrategy(settings.zerox0_url, timeout_s=settings.upstream_timeout_s),
        LocalDiskStrategy(settings.uploads_dir, settings.local_base_url),
    ]


async def relay_upload(file: RelayedFile, strategies: Sequence[UploadStrategy]) -> UploadAttemptResult:
    for strategy in strategies:
        result = await strategy.attempt(file)
        if result.succeeded:
            return result
    raise RuntimeError(f"no upload strategy succeeded for {file.safe_name}")


def describe_result(result: UploadAttemptResult) -> str:
    if result.is_public:
        return f"uploaded via {result.host_label}"
    return (
        "using a local URL; it is not reachable from outside this machine, "
        "retry the upload to obtain a public link"
    )
