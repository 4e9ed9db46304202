"""
Company Storage

PostgreSQL storage for company profiles (one per user).
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from .base import BaseStorage
from ..models.company import Company

logger = logging.getLogger("studio.storage.company")


class CompanyStorage(BaseStorage):
    """Storage for Company profiles"""

    async def get_by_user(self, user_id: UUID) -> Optional[Company]:
        row = await self.fetchrow("SELECT * FROM companies WHERE user_id = $1", user_id)
        return self._row_to_company(row) if row else None

    async def upsert(self, company: Company) -> Company:
        """Create or replace the user's company profile"""
        company.updated_at = datetime.utcnow()
        query = """
            INSERT INTO companies (
                id, user_id, name, industry, size, annual_revenue, currency,
                goals, challenges, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            ON CONFLICT (user_id) DO UPDATE SET
                name = EXCLUDED.name,
                industry = EXCLUDED.industry,
                size = EXCLUDED.size,
                annual_revenue = EXCLUDED.annual_revenue,
                currency = EXCLUDED.currency,
                goals = EXCLUDED.goals,
                challenges = EXCLUDED.challenges,
                updated_at = EXCLUDED.updated_at
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            company.id, company.user_id, company.name, company.industry, company.size,
            company.annual_revenue, company.currency, company.goals, company.challenges,
            company.created_at, company.updated_at
        )
        return self._row_to_company(row)

    def _row_to_company(self, row) -> Company:
        return Company(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            industry=row["industry"],
            size=row["size"],
            annual_revenue=float(row["annual_revenue"]) if row["annual_revenue"] is not None else None,
            currency=row["currency"],
            goals=list(row["goals"] or []),
            challenges=list(row["challenges"] or []),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
