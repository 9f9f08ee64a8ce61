"""Read-only access to data point configuration for the alarm notifier."""
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import AlarmStoreError
from models.data_point import DataPoint


class PointRegistry:

    async def lookup(self, session: AsyncSession, point_id: int) -> DataPoint | None:
        try:
            return await session.get(DataPoint, point_id)
        except SQLAlchemyError as exc:
            raise AlarmStoreError(
                "Point registry lookup failed", detail={"point_id": point_id}
            ) from exc
