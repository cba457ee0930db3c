"""Report lifecycle"""
import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models.report import TERMINAL_REPORT_STATUSES, Report, ReportStatus
from ..models.user import User
from ..repositories import comments, forums, reports

logger = logging.getLogger(__name__)
settings = get_settings()

REPORT_CODE_PREFIX = "RP-"

# admin decisions allowed from pending when transitions are strict
DECISION_STATUSES = frozenset({ReportStatus.RESOLVED, ReportStatus.REJECTED})


def report_code_prefix(day: date) -> str:
    return f"{REPORT_CODE_PREFIX}{day:%Y%m%d}"


class ReportService:
    """
    pending -> resolved | rejected   admin decision
    pending -> invalid               reported content was deleted
    pending -> closed                another report on the same content was decided
    """

    @staticmethod
    async def get_report(db: AsyncSession, report_id: str) -> Report:
        report = await reports.get(db, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        return report

    @staticmethod
    async def _last_sequence(db: AsyncSession, prefix: str) -> int:
        """Highest sequence number issued under the day prefix; gaps left by deletes are not reused"""
        result = await db.execute(
            select(func.max(Report.report_code)).where(Report.report_code.like(f"{prefix}%"))
        )
        last = result.scalar_one_or_none()
        return int(last[len(prefix):]) if last else 0

    @staticmethod
    async def _next_code(db: AsyncSession, day: date, attempt: int) -> str:
        prefix = report_code_prefix(day)
        last = await ReportService._last_sequence(db, prefix)
        return f"{prefix}{last + 1 + attempt:05d}"

    @staticmethod
    async def _resolve_defendant(
        db: AsyncSession, forum_id: str, comment_id: str | None, reply_comment_id: str | None
    ) -> str:
        forum = await forums.get(db, forum_id)
        if forum is None:
            raise NotFoundError("Forum not found")
        if not comment_id and not reply_comment_id:
            return forum.author_id

        target_id = reply_comment_id or comment_id
        comment = await comments.get(db, target_id)
        if comment is None or comment.forum_id != forum.id:
            raise NotFoundError("Comment not found")
        if reply_comment_id and comment_id and comment.parent_id != comment_id:
            raise NotFoundError("Comment not found")
        return comment.author_id

    @staticmethod
    async def create_report(
        db: AsyncSession,
        reporter: User,
        forum_id: str,
        reason: str,
        comment_id: str | None = None,
        reply_comment_id: str | None = None,
        day: date | None = None,
    ) -> Report:
        """File a pending report; nobody may report their own content"""
        if not reason or not reason.strip():
            raise ValidationError("A reason is required")
        defendant_id = await ReportService._resolve_defendant(db, forum_id, comment_id, reply_comment_id)
        if defendant_id == reporter.id:
            raise ValidationError("You cannot report your own content")

        day = day or datetime.now().date()
        for attempt in range(settings.report_code_max_retries):
            code = await ReportService._next_code(db, day, attempt)
            report = Report(
                report_code=code,
                reporter_id=reporter.id,
                defendant_id=defendant_id,
                reason=reason.strip(),
                status=ReportStatus.PENDING.value,
                forum_id=forum_id,
                comment_id=comment_id,
                reply_comment_id=reply_comment_id,
            )
            try:
                async with db.begin_nested():
                    db.add(report)
            except IntegrityError:
                logger.warning("report code %s already taken, retrying", code)
                continue
            await db.commit()
            await db.refresh(report)
            logger.info("report %s (%s) filed by %s against %s", report.id, code, reporter.id, defendant_id)
            return report

        raise ConflictError("Could not allocate a report code, try again")

    @staticmethod
    async def update_status(db: AsyncSession, report_id: str, new_status: str) -> Report:
        """Admin decision: only the status and updated_at change"""
        report = await ReportService.get_report(db, report_id)
        try:
            target = ReportStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown report status: {new_status}")

        if settings.report_strict_transitions:
            if ReportStatus(report.status) in TERMINAL_REPORT_STATUSES:
                raise ValidationError(f"Report is already {report.status}")
            if target not in DECISION_STATUSES:
                raise ValidationError(f"Cannot move a report to {target.value}")

        report.status = target.value
        report.updated_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(report)
        logger.info("report %s -> %s", report.id, target.value)
        return report

    @staticmethod
    async def close_superseded(db: AsyncSession, report: Report) -> int:
        """Close the other pending reports on the same content and defendant once this one is decided"""
        if report.status not in {s.value for s in DECISION_STATUSES}:
            return 0
        clauses = [
            Report.id != report.id,
            Report.status == ReportStatus.PENDING.value,
            Report.defendant_id == report.defendant_id,
            Report.forum_id == report.forum_id,
            Report.comment_id.is_(None) if report.comment_id is None else Report.comment_id == report.comment_id,
            Report.reply_comment_id.is_(None)
            if report.reply_comment_id is None
            else Report.reply_comment_id == report.reply_comment_id,
        ]
        closed = await reports.update_many(
            db, clauses, {"status": ReportStatus.CLOSED.value, "updated_at": datetime.now(timezone.utc)}
        )
        await db.commit()
        if closed:
            logger.info("report %s closed %d superseded reports", report.id, closed)
        return closed

    @staticmethod
    async def invalidate(
        db: AsyncSession, forum_ids: Iterable[str] = (), comment_ids: Iterable[str] = ()
    ) -> int:
        """pending -> invalid for reports on deleted content; joins the caller's transaction"""
        forum_list = list(forum_ids)
        comment_list = list(comment_ids)
        targets = []
        if forum_list:
            targets.append(Report.forum_id.in_(forum_list))
        if comment_list:
            targets.append(Report.comment_id.in_(comment_list))
            targets.append(Report.reply_comment_id.in_(comment_list))
        if not targets:
            return 0
        return await reports.update_many(
            db,
            [Report.status == ReportStatus.PENDING.value, or_(*targets)],
            {"status": ReportStatus.INVALID.value, "updated_at": datetime.now(timezone.utc)},
        )

    @staticmethod
    async def list_reports(
        db: AsyncSession,
        status: str | None = None,
        target_type: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[int, list[Report]]:
        clauses = []
        if status:
            clauses.append(Report.status == status)
        if target_type == "forum":
            clauses.append(Report.comment_id.is_(None))
        elif target_type == "comment":
            clauses.append(Report.comment_id.is_not(None))
        total = await reports.count(db, *clauses)
        items = await reports.find_many(
            db, *clauses, offset=offset, limit=limit, order_by=(Report.created_at.desc(), Report.report_code.desc())
        )
        return total, items

    @staticmethod
    async def count_by_status(db: AsyncSession) -> dict[str, int]:
        return {s.value: await reports.count(db, Report.status == s.value) for s in ReportStatus}

    @staticmethod
    async def delete_reports(db: AsyncSession, report_ids: list[str]) -> int:
        """Explicit admin bulk delete, the only way a report row goes away"""
        deleted = await reports.delete_many(db, Report.id.in_(report_ids))
        await db.commit()
        logger.info("deleted %d reports", deleted)
        return deleted


report_service = ReportService()
