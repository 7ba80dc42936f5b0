"""
Abstract base class for probe implementations
"""

from abc import ABC, abstractmethod

from ..models import ProbeSample


class BaseProbe(ABC):
    """Abstract base class for reachability probes"""

    kind = "probe"

    @abstractmethod
    async def probe(self, target: str, timeout_ms: int) -> ProbeSample:
        """
        Make one reachability attempt.

        Args:
            target: Host name or IP address
            timeout_ms: Give up after this many milliseconds

        Returns:
            ProbeSample with RTT on success, error kind on failure
        """
        pass

    async def close(self):
        """Clean up resources"""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
