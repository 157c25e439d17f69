"""
Tenant Service

Async CRUD for tenants (the dashboard's "clients") plus the cascade that
removes a tenant together with everything it owns.
All functions accept an injected AsyncSession.
"""

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.exceptions import (
    CascadeAbortedError,
    DuplicateNameError,
    InvalidInputError,
    PartialFailureError,
    StoreTimeoutError,
    StoreUnavailableError,
    TenantNotFoundError,
)
from pgdash.models.tenant import AccessRecord, Notice, Tenant, TenantStatus
from pgdash.models.user import User
from pgdash.models.user_session import UserSession
from pgdash.utils import store
from pgdash.utils.slugify import slugify

logger = logging.getLogger(__name__)

TENANT_FIELDS = {"name", "slug", "plan", "status", "drive_link", "notes"}


def _clean_status(value: str | None) -> str:
    if value is None:
        return TenantStatus.active.value
    try:
        return TenantStatus(value).value
    except ValueError as exc:
        raise InvalidInputError(f"Unknown tenant status '{value}'", field="status") from exc


def _clean_slug(slug: str | None, name: str) -> str:
    cleaned = slugify(slug or name)
    if not cleaned:
        raise InvalidInputError("Slug is required", field="slug")
    return cleaned


async def _ensure_slug_available(slug: str, db: AsyncSession, exclude_id: int | None = None) -> None:
    query = select(Tenant.id).where(Tenant.slug == slug)
    if exclude_id is not None:
        query = query.where(Tenant.id != exclude_id)
    if await store.scalar(db, query, "tenants.check_slug") is not None:
        raise DuplicateNameError("Tenant", "slug", slug)


async def create_tenant(
    name: str,
    db: AsyncSession,
    slug: str | None = None,
    plan: str | None = None,
    status: str | None = None,
    drive_link: str | None = None,
    notes: str | None = None,
) -> Tenant:
    """Create a tenant. The slug defaults to one derived from the name."""
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Name is required", field="name")
    slug = _clean_slug(slug, name)

    try:
        async with store.transaction(db, "tenants.create"):
            await _ensure_slug_available(slug, db)
            tenant = Tenant(
                name=name,
                slug=slug,
                plan=plan or None,
                status=_clean_status(status),
                drive_link=drive_link or None,
                notes=notes or None,
            )
            db.add(tenant)
            await store.flush(db, "tenants.create")
    except IntegrityError as exc:
        raise DuplicateNameError("Tenant", "slug", slug) from exc

    logger.info("Tenant created: id=%d slug=%s", tenant.id, tenant.slug)
    return tenant


async def get_tenant_by_id(tenant_id: int, db: AsyncSession) -> Tenant | None:
    """Return a Tenant by primary key, or None if not found."""
    return await store.scalar(db, select(Tenant).where(Tenant.id == tenant_id), "tenants.get")


async def get_tenant(tenant_id: int, db: AsyncSession) -> Tenant:
    tenant = await get_tenant_by_id(tenant_id, db)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)
    return tenant


async def get_tenant_by_slug(slug: str, db: AsyncSession) -> Tenant | None:
    """Return a Tenant by slug, or None if not found."""
    return await store.scalar(db, select(Tenant).where(Tenant.slug == slug), "tenants.get_by_slug")


async def list_tenants(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 100,
) -> list[Tenant]:
    """Return a page of tenants ordered by name."""
    result = await store.execute(
        db,
        select(Tenant).order_by(Tenant.name, Tenant.id).offset(skip).limit(limit),
        "tenants.list",
    )
    return list(result.scalars().all())


async def update_tenant(
    tenant_id: int,
    updates: dict[str, Any],
    db: AsyncSession,
) -> Tenant:
    """
    Apply a partial update to a Tenant.

    Only known keys present in `updates` are changed. Name and slug can be
    changed but never blanked; the slug stays unique.
    """
    try:
        async with store.transaction(db, "tenants.update"):
            tenant = await get_tenant(tenant_id, db)
            for key, value in updates.items():
                if key not in TENANT_FIELDS:
                    continue
                if key == "name":
                    value = (value or "").strip()
                    if not value:
                        raise InvalidInputError("Name is required", field="name")
                elif key == "slug":
                    value = slugify(value)
                    if not value:
                        raise InvalidInputError("Slug is required", field="slug")
                    await _ensure_slug_available(value, db, exclude_id=tenant_id)
                elif key == "status":
                    if value is None:
                        continue
                    value = _clean_status(value)
                else:
                    value = value or None
                setattr(tenant, key, value)
            await store.flush(db, "tenants.update")
    except IntegrityError as exc:
        raise DuplicateNameError("Tenant", "slug", updates.get("slug")) from exc

    logger.info("Tenant updated: id=%d slug=%s", tenant.id, tenant.slug)
    return tenant


# ── Cascade delete ───────────────────────────────────────────────────────────


class CascadeState(str, enum.Enum):
    requested = "requested"
    deleting_dependents = "deleting_dependents"
    deleting_tenant = "deleting_tenant"
    done = "done"
    failed = "failed"


@dataclass(frozen=True)
class CascadeStep:
    name: str
    build: Callable[[int], Any]


def _tenant_user_ids(tenant_id: int):
    return select(User.id).where(User.tenant_id == tenant_id)


# Foreign keys point upwards, so children go first
DEPENDENT_STEPS: tuple[CascadeStep, ...] = (
    CascadeStep("notices", lambda tid: delete(Notice).where(Notice.tenant_id == tid)),
    CascadeStep("accesses", lambda tid: delete(AccessRecord).where(AccessRecord.tenant_id == tid)),
    CascadeStep(
        "sessions",
        lambda tid: delete(UserSession).where(UserSession.user_id.in_(_tenant_user_ids(tid))),
    ),
    CascadeStep("users", lambda tid: delete(User).where(User.tenant_id == tid)),
)
TENANT_STEP = CascadeStep("tenant", lambda tid: delete(Tenant).where(Tenant.id == tid))


@dataclass
class CascadeReport:
    tenant_id: int
    state: CascadeState = CascadeState.requested
    deleted: dict[str, int] = field(default_factory=dict)

    @property
    def completed_steps(self) -> list[str]:
        return list(self.deleted)

    @property
    def dependent_rows(self) -> int:
        return sum(count for step, count in self.deleted.items() if step != TENANT_STEP.name)


class TenantCascadeDeleter:
    """
    Deletes a tenant and its dependents in one transaction.

    requested -> deleting_dependents -> deleting_tenant -> done, or failed.
    A failure at any step rolls every earlier step back and raises
    CascadeAbortedError; store timeouts and outages are re-raised unchanged
    after the rollback so the caller may retry from the start. If the
    rollback itself fails the outcome is unknown and PartialFailureError is
    raised for manual reconciliation.
    """

    steps = DEPENDENT_STEPS

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def delete(self, tenant_id: int) -> CascadeReport:
        report = CascadeReport(tenant_id=tenant_id)
        current = "lock"
        try:
            tenant = await store.scalar(
                self.db,
                select(Tenant).where(Tenant.id == tenant_id).with_for_update(),
                "tenants.cascade.lock",
            )
            if tenant is None:
                raise TenantNotFoundError(tenant_id)
            logger.info("Tenant cascade started: id=%d slug=%s", tenant_id, tenant.slug)

            report.state = CascadeState.deleting_dependents
            for step in self.steps:
                current = step.name
                report.deleted[step.name] = await self._run_step(step, tenant_id)

            report.state = CascadeState.deleting_tenant
            current = TENANT_STEP.name
            report.deleted[TENANT_STEP.name] = await self._run_step(TENANT_STEP, tenant_id)

            current = "commit"
            await store.commit(self.db, "tenants.cascade.commit")
        except TenantNotFoundError:
            await self.db.rollback()
            raise
        except Exception as exc:
            report.state = CascadeState.failed
            await self._abort(report, current, exc)

        report.state = CascadeState.done
        logger.info("Tenant cascade finished: id=%d deleted=%s", tenant_id, report.deleted)
        return report

    async def _run_step(self, step: CascadeStep, tenant_id: int) -> int:
        statement = step.build(tenant_id).execution_options(synchronize_session=False)
        result = await store.execute(self.db, statement, f"tenants.cascade.{step.name}")
        count = result.rowcount or 0
        logger.info("Tenant cascade step %s: tenant_id=%d rows=%d", step.name, tenant_id, count)
        return count

    async def _abort(self, report: CascadeReport, step: str, exc: Exception) -> None:
        try:
            await self.db.rollback()
        except Exception as rollback_exc:
            logger.critical(
                "Tenant cascade rollback failed: tenant_id=%d step=%s completed=%s; manual reconciliation required",
                report.tenant_id,
                step,
                report.completed_steps,
                exc_info=True,
            )
            raise PartialFailureError(report.tenant_id, step, exc, report.completed_steps) from rollback_exc

        logger.error(
            "Tenant cascade aborted and rolled back: tenant_id=%d step=%s cause=%s",
            report.tenant_id,
            step,
            type(exc).__name__,
        )
        if isinstance(exc, (StoreTimeoutError, StoreUnavailableError)):
            raise exc
        raise CascadeAbortedError(report.tenant_id, step, exc) from exc


async def delete_tenant(tenant_id: int, db: AsyncSession) -> CascadeReport:
    """Remove a tenant with its notices, accesses, users and their sessions."""
    return await TenantCascadeDeleter(db).delete(tenant_id)
