from abc import ABC, abstractmethod
from typing import Any, Dict

from .types import RawOutput


class InferenceBackend(ABC):
    """
    Abstract inference boundary.
    Dispatch code must depend ONLY on this interface.
    """

    name = "base"

    @abstractmethod
    async def run(
        self,
        model_id: str,
        payload: Dict[str, Any],
        *,
        stream: bool = False,
    ) -> RawOutput:
        """
        Invoke model_id with payload.

        Raises:
            InferenceError: the call failed or was rejected upstream
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources held by the backend."""
        return None
