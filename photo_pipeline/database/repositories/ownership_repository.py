from photo_pipeline.database.connection import get_connection


class OwnershipRepository:
    """Read-only lookups into entities owned by the surrounding application."""

    async def get_candidate_owner(self, candidate_id: str) -> str | None:
        """Return the user_id owning a candidate profile, or None if it does not exist."""
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT user_id FROM candidates WHERE id = %s",
                    (candidate_id,),
                )
                row = await cur.fetchone()

        if row is None:
            return None
        return str(row[0])
