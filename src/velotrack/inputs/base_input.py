import abc
from typing import Iterator, List, Tuple

from velotrack.utils.types import Detection


class DetectionSource(abc.ABC):
    """Anything that yields (frame_id, detections) in frame order."""

    @abc.abstractmethod
    def frames(self) -> Iterator[Tuple[int, List[Detection]]]:
        ...
