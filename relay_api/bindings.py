from dataclasses import dataclass

PROXY_PREFIX = "/proxy"
UPSTREAM_PREFIX = "/open/v1"


@dataclass(frozen=True)
class ProxyBinding:
    method: str
    name: str
    upstream_path: str

    @property
    def inbound_path(self) -> str:
        return f"{PROXY_PREFIX}/{self.name}"


def _binding(method: str, name: str) -> ProxyBinding:
    return ProxyBinding(method=method, name=name, upstream_path=f"{UPSTREAM_PREFIX}/{name}")


BINDINGS: tuple[ProxyBinding, ...] = (
    _binding("POST", "access_token"),
    _binding("POST", "create_customised_audio"),
    _binding("GET", "customised_audio"),
    _binding("POST", "list_customised_audio"),
    _binding("POST", "create_audio_task"),
    _binding("GET", "audio_task"),
    _binding("GET", "audio_task_state"),
    _binding("POST", "audio_task_state"),
)
