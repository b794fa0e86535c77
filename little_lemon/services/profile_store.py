import json
import logging

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError

from little_lemon.database import Base, Database
from little_lemon.exceptions import QueryError, StorageUnavailable
from little_lemon.models.preference import Preference
from little_lemon.schemas.profile import (
    NotificationPreferences,
    OnboardingRequest,
    Profile,
    ProfileUpdate,
    format_phone_number,
    validate_email,
)

logger = logging.getLogger(__name__)

PROFILE_KEYS = (
    "firstName",
    "lastName",
    "email",
    "phoneNumber",
    "profileImage",
    "notifications",
)


class ProfileStore:
    """Key/value profile settings kept in the ``preferences`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def initialize(self) -> None:
        try:
            async with self._db.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, tables=[Preference.__table__])
        except (SQLAlchemyError, OSError) as exc:
            raise StorageUnavailable(f"Cannot open preferences table: {exc}") from exc

    async def is_onboarded(self) -> bool:
        values = await self._get_many(("firstName", "email"))
        return bool(values.get("firstName") and values.get("email"))

    async def complete_onboarding(self, first_name: str, last_name: str, email: str) -> Profile:
        request = OnboardingRequest(first_name=first_name, last_name=last_name, email=email)
        validate_email(request.email)
        await self._set_many(
            {
                "firstName": request.first_name,
                "lastName": request.last_name,
                "email": request.email,
            }
        )
        logger.info("Onboarding completed")
        return await self.load()

    async def load(self) -> Profile:
        values = await self._get_many(PROFILE_KEYS)
        notifications = NotificationPreferences()
        if values.get("notifications"):
            notifications = NotificationPreferences.model_validate(json.loads(values["notifications"]))
        return Profile(
            first_name=values.get("firstName", ""),
            last_name=values.get("lastName", ""),
            email=values.get("email", ""),
            phone_number=values.get("phoneNumber", ""),
            profile_image=values.get("profileImage") or None,
            notifications=notifications,
        )

    async def save(self, update: ProfileUpdate) -> Profile:
        phone_number = format_phone_number(update.phone_number)
        if update.email:
            validate_email(update.email)

        await self._set_many(
            {
                "firstName": update.first_name,
                "lastName": update.last_name,
                "email": update.email,
                "phoneNumber": phone_number,
                "notifications": update.notifications.model_dump_json(by_alias=True),
            }
        )
        logger.info("Profile saved")
        return await self.load()

    async def set_profile_image(self, uri: str | None) -> Profile:
        if uri:
            await self._set_many({"profileImage": uri})
        else:
            await self._delete(("profileImage",))
        return await self.load()

    async def clear(self) -> None:
        """Forget everything about the user (logout)."""
        await self._delete(PROFILE_KEYS)
        logger.info("Profile cleared")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_many(self, keys) -> dict[str, str]:
        try:
            async with self._db.session() as db:
                result = await db.execute(select(Preference).where(Preference.key.in_(list(keys))))
                return {row.key: row.value for row in result.scalars().all()}
        except SQLAlchemyError as exc:
            raise QueryError(f"Failed to load profile: {exc}") from exc

    async def _set_many(self, values: dict[str, str]) -> None:
        stmt = insert(Preference).values([{"key": k, "value": v} for k, v in values.items()])
        stmt = stmt.on_conflict_do_update(
            index_elements=[Preference.key],
            set_={"value": stmt.excluded.value},
        )
        try:
            async with self._db.session() as db:
                async with db.begin():
                    await db.execute(stmt)
        except SQLAlchemyError as exc:
            raise QueryError(f"Failed to save profile: {exc}") from exc

    async def _delete(self, keys) -> None:
        try:
            async with self._db.session() as db:
                async with db.begin():
                    await db.execute(delete(Preference).where(Preference.key.in_(list(keys))))
        except SQLAlchemyError as exc:
            raise QueryError(f"Failed to clear profile: {exc}") from exc
