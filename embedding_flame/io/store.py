"""
Point-cloud storage interface.

Durable storage is provided by the host application; this module fixes the
interface the comparison service resolves identifiers through and ships an
in-memory implementation for tests and single-process use.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Tuple
import logging

from ..core.point_cloud import PointCloud
from ..exceptions import NotFoundError

logger = logging.getLogger(__name__)


class PointCloudStore(ABC):
    """Abstract point-cloud store keyed by opaque string identifiers."""

    @abstractmethod
    def put(self, cloud: PointCloud) -> str:
        """Store a cloud and return its new identifier."""

    @abstractmethod
    def get(self, identifier: str) -> PointCloud:
        """Resolve an identifier, raising NotFoundError if unknown."""

    @abstractmethod
    def __contains__(self, identifier: str) -> bool:
        ...


class InMemoryPointCloudStore(PointCloudStore):
    """Dictionary-backed store holding clouds in their wire shape."""

    def __init__(self):
        self._records: Dict[str, Tuple[list, str]] = {}

    def put(self, cloud: PointCloud) -> str:
        identifier = str(uuid.uuid4())
        self._records[identifier] = (cloud.to_wire(), datetime.now().isoformat())
        logger.info(f"Stored point cloud {identifier} ({len(cloud)} points)")
        return identifier

    def get(self, identifier: str) -> PointCloud:
        record = self._records.get(identifier)
        if record is None:
            raise NotFoundError(identifier)
        return PointCloud.from_wire(record[0])

    def created_at(self, identifier: str) -> str:
        if identifier not in self._records:
            raise NotFoundError(identifier)
        return self._records[identifier][1]

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._records

    def __len__(self) -> int:
        return len(self._records)
