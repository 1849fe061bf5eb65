"""Execution context of the running process."""

from pydantic import BaseModel, ConfigDict

from iconsearch.config import ExecutionSettings


class ExecutionContext(BaseModel):
    """Where this process runs relative to the search server.

    A client process cannot host server-only backends and reaches the
    cloud store through the server's relay routes at ``api_base_url``.
    """

    model_config = ConfigDict(frozen=True)

    is_client: bool = False
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 30.0

    @property
    def can_run_server_stores(self) -> bool:
        return not self.is_client

    @classmethod
    def from_settings(cls, settings: ExecutionSettings) -> "ExecutionContext":
        return cls(
            is_client=settings.is_client,
            api_base_url=settings.api_base_url,
            request_timeout=settings.request_timeout,
        )
