from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantforge.domain.models import Staff, StaffBranch, UserRole


async def find_staff_by_email(session: AsyncSession, tenant_id: str, email: str) -> Staff | None:
    # Match case-insensitively even for rows written before emails were normalized.
    result = await session.execute(
        select(Staff).where(Staff.tenant_id == tenant_id, func.lower(Staff.email) == email.lower())
    )
    return result.scalars().first()


async def upsert_staff(session: AsyncSession, staff: Staff) -> tuple[Staff, bool]:
    existing = await find_staff_by_email(session, staff.tenant_id, staff.email)
    if existing is None:
        staff.email = staff.email.lower()
        session.add(staff)
        return staff, True
    existing.user_id = staff.user_id
    existing.first_name = staff.first_name
    existing.last_name = staff.last_name
    existing.display_name = staff.display_name
    existing.role = staff.role
    existing.role_title = staff.role_title
    existing.is_active = staff.is_active
    existing.notification_preferences_json = staff.notification_preferences_json
    return existing, False


async def delete_staff(session: AsyncSession, staff_id: str) -> int:
    result = await session.execute(delete(Staff).where(Staff.id == staff_id))
    return int(result.rowcount or 0)


async def list_staff(session: AsyncSession, tenant_id: str) -> list[Staff]:
    result = await session.execute(select(Staff).where(Staff.tenant_id == tenant_id))
    return list(result.scalars().all())


async def upsert_staff_branch(session: AsyncSession, link: StaffBranch) -> tuple[StaffBranch, bool]:
    result = await session.execute(
        select(StaffBranch).where(
            StaffBranch.staff_id == link.staff_id,
            StaffBranch.branch_id == link.branch_id,
        )
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        session.add(link)
        return link, True
    existing.is_primary = link.is_primary
    return existing, False


async def list_staff_branches(session: AsyncSession, staff_id: str) -> list[StaffBranch]:
    result = await session.execute(select(StaffBranch).where(StaffBranch.staff_id == staff_id))
    return list(result.scalars().all())


async def delete_staff_branches(session: AsyncSession, staff_id: str) -> int:
    result = await session.execute(delete(StaffBranch).where(StaffBranch.staff_id == staff_id))
    return int(result.rowcount or 0)


async def upsert_user_role(session: AsyncSession, role: UserRole) -> tuple[UserRole, bool]:
    result = await session.execute(
        select(UserRole).where(UserRole.user_id == role.user_id, UserRole.tenant_id == role.tenant_id)
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        session.add(role)
        return role, True
    existing.role = role.role
    existing.staff_id = role.staff_id
    existing.is_active = role.is_active
    existing.permissions_json = role.permissions_json
    return existing, False


async def list_user_roles(session: AsyncSession, tenant_id: str) -> list[UserRole]:
    result = await session.execute(select(UserRole).where(UserRole.tenant_id == tenant_id))
    return list(result.scalars().all())


async def delete_user_role(session: AsyncSession, role_id: str) -> int:
    result = await session.execute(delete(UserRole).where(UserRole.id == role_id))
    return int(result.rowcount or 0)
