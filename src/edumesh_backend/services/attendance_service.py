'''
Attendance marking, listing and monthly summaries.
'''
import calendar
from datetime import date
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole, AttendanceStatusEnum, NotificationTypeEnum
from ..models import attendance as attendance_models
from .notification_service import NotificationService, NotificationIntent
from .permissions import authorize_roles
from .scope import ScopeFilter, ScopedResource


class AttendanceService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        scope_filter: Annotated[ScopeFilter, Depends(ScopeFilter)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)]
    ):
        self.db = db
        self.scope_filter = scope_filter
        self.notification_service = notification_service

    async def get_attendance_for_api(
        self,
        current_user: db_models.Users,
        class_id: Optional[UUID] = None,
        on_date: Optional[date] = None,
        student_id: Optional[UUID] = None
    ) -> list[attendance_models.AttendanceRead]:
        log.info(f"User {current_user.id} (Role: {current_user.role}) listing attendance.")
        try:
            scope = await self.scope_filter.resolve(ScopedResource.ATTENDANCE, current_user)
            if scope.is_empty:
                return []

            stmt = scope.apply(select(db_models.Attendance))
            if class_id:
                stmt = stmt.filter(db_models.Attendance.class_id == class_id)
            if on_date:
                stmt = stmt.filter(db_models.Attendance.date == on_date)
            if student_id:
                stmt = stmt.filter(db_models.Attendance.student_id == student_id)
            stmt = stmt.order_by(db_models.Attendance.date.desc(), db_models.Attendance.created_at)

            result = await self.db.execute(stmt)
            return [attendance_models.AttendanceRead.model_validate(a) for a in result.scalars().all()]
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Database error in get_attendance_for_api for user {current_user.id}: {e}", exc_info=True)
            raise

    async def mark_attendance_for_api(self, data: attendance_models.AttendanceMark, current_user: db_models.Users) -> attendance_models.AttendanceMarkResult:
        """
        Replaces the whole attendance sheet of (class, date): the delete and
        the inserts run in one transaction, so readers see the old sheet or
        the new one, never a mix. Parents of absent students are notified.
        """
        log.info(f"User {current_user.id} marking attendance for class {data.class_id} on {data.date}.")
        authorize_roles(current_user, [UserRole.ADMIN, UserRole.TEACHER])

        stmt = select(db_models.Classes).filter(
            db_models.Classes.id == data.class_id,
            db_models.Classes.school_id == current_user.school_id
        )
        class_orm = (await self.db.execute(stmt)).scalars().first()
        if not class_orm:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")

        if current_user.role == UserRole.TEACHER.value:
            teacher_id = await self.scope_filter.get_teacher_id(current_user)
            if class_orm.teacher_id is None or class_orm.teacher_id != teacher_id:
                log.warning(f"SECURITY: User {current_user.id} tried to mark attendance for class {class_orm.id}.")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only mark attendance for your own classes")

        student_ids = [entry.student_id for entry in data.attendance]
        if len(set(student_ids)) != len(student_ids):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Each student may appear only once")

        students = {s.id: s for s in await self.scope_filter.get_students_in_classes(current_user.school_id, [class_orm.name])}
        unknown = [str(sid) for sid in student_ids if sid not in students]
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Students not enrolled in class {class_orm.name}: {', '.join(unknown)}"
            )

        try:
            await self.db.execute(delete(db_models.Attendance).where(
                db_models.Attendance.class_id == class_orm.id,
                db_models.Attendance.date == data.date
            ))
            records = [
                db_models.Attendance(
                    school_id=current_user.school_id,
                    student_id=entry.student_id,
                    class_id=class_orm.id,
                    date=data.date,
                    status=entry.status.value,
                    notes=entry.notes,
                    marked_by=current_user.id,
                )
                for entry in data.attendance
            ]
            self.db.add_all(records)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            log.error(f"Attendance replacement for class {data.class_id} on {data.date} failed: {e}", exc_info=True)
            raise

        result = attendance_models.AttendanceMarkResult(
            class_id=class_orm.id,
            date=data.date,
            marked=len(records),
            records=[attendance_models.AttendanceRead.model_validate(r) for r in records],
        )
        log.info(f"Marked {len(records)} attendance record(s) for class {class_orm.id} on {data.date}.")

        intents = []
        for entry in data.attendance:
            student = students[entry.student_id]
            if entry.status == AttendanceStatusEnum.ABSENT and student.parent_id:
                intents.append(NotificationIntent(
                    student.parent_id,
                    "Attendance Alert",
                    f"{student.name} was marked absent on {data.date.isoformat()}",
                    NotificationTypeEnum.ATTENDANCE,
                    {"date": data.date.isoformat(), "class_id": class_orm.id, "student_id": student.id},
                ))
        await self.notification_service.fan_out(current_user.school_id, intents)
        return result

    async def get_attendance_summary_for_api(
        self,
        current_user: db_models.Users,
        student_id: Optional[UUID] = None,
        month: Optional[int] = None,
        year: Optional[int] = None
    ) -> list[attendance_models.AttendanceSummaryRow]:
        """
        Per-student status counts for one month (the current one by default),
        limited to the students the caller may see.
        """
        today = date.today()
        month = month or today.month
        year = year or today.year
        first_day = date(year, month, 1)
        last_day = date(year, month, calendar.monthrange(year, month)[1])

        students = await self.scope_filter.get_visible_students(current_user)
        if student_id:
            students = [s for s in students if s.id == student_id]
        if not students:
            return []

        stmt = select(
            db_models.Attendance.student_id,
            db_models.Attendance.status,
            func.count(db_models.Attendance.id)
        ).filter(
            db_models.Attendance.school_id == current_user.school_id,
            db_models.Attendance.student_id.in_([s.id for s in students]),
            db_models.Attendance.date.between(first_day, last_day)
        ).group_by(db_models.Attendance.student_id, db_models.Attendance.status)

        rows = {s.id: attendance_models.AttendanceSummaryRow(student_id=s.id, student_name=s.name, class_name=s.class_name) for s in students}
        for sid, attendance_status, count in (await self.db.execute(stmt)).all():
            row = rows[sid]
            setattr(row, attendance_status, getattr(row, attendance_status) + count)
            row.total += count

        for row in rows.values():
            row.percentage = round(row.present / row.total * 100, 2) if row.total else 0.0
        return sorted(rows.values(), key=lambda r: (r.class_name, r.student_name))
