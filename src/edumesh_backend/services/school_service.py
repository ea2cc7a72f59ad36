'''
School information, dashboard statistics, subjects and class timetable.
'''
import calendar
from datetime import date
from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole, AttendanceStatusEnum, ExamStatusEnum
from ..models import school as school_models
from .permissions import authorize_roles
from .scope import ScopeFilter
from .user_service import UserService


class SchoolService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        scope_filter: Annotated[ScopeFilter, Depends(ScopeFilter)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        self.db = db
        self.scope_filter = scope_filter
        self.user_service = user_service

    async def _get_school(self, school_id) -> db_models.Schools:
        school = await self.db.get(db_models.Schools, school_id)
        if not school:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
        return school

    async def _count(self, stmt) -> int:
        return (await self.db.execute(stmt)).scalar_one()

    async def get_school_info_for_api(self, current_user: db_models.Users) -> school_models.SchoolRead:
        school = await self._get_school(current_user.school_id)
        return school_models.SchoolRead.model_validate(school)

    async def update_school_info_for_api(self, data: school_models.SchoolUpdate, current_user: db_models.Users) -> school_models.SchoolRead:
        authorize_roles(current_user, [UserRole.ADMIN])
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

        school = await self._get_school(current_user.school_id)
        for key, value in update_data.items():
            setattr(school, key, value)
        await self.db.commit()
        log.info(f"Admin {current_user.id} updated school {school.id}: {sorted(update_data)}.")
        return school_models.SchoolRead.model_validate(school)

    async def get_school_stats_for_api(self, current_user: db_models.Users) -> school_models.SchoolStats:
        """
        Dashboard counters for the caller's school. The attendance rate is
        the share of `present` rows among all rows of the current month.
        """
        authorize_roles(current_user, [UserRole.ADMIN, UserRole.TEACHER])
        school_id = current_user.school_id
        today = date.today()
        month_start = date(today.year, today.month, 1)
        month_end = date(today.year, today.month, calendar.monthrange(today.year, today.month)[1])

        def count_users(role: UserRole):
            return select(func.count(db_models.Users.id)).filter(
                db_models.Users.school_id == school_id,
                db_models.Users.role == role.value,
                db_models.Users.is_active.is_(True)
            )

        total_attendance = await self._count(select(func.count(db_models.Attendance.id)).filter(
            db_models.Attendance.school_id == school_id,
            db_models.Attendance.date.between(month_start, month_end)
        ))
        present = await self._count(select(func.count(db_models.Attendance.id)).filter(
            db_models.Attendance.school_id == school_id,
            db_models.Attendance.date.between(month_start, month_end),
            db_models.Attendance.status == AttendanceStatusEnum.PRESENT.value
        ))

        return school_models.SchoolStats(
            total_teachers=await self._count(count_users(UserRole.TEACHER)),
            total_students=await self._count(count_users(UserRole.STUDENT)),
            total_parents=await self._count(count_users(UserRole.PARENT)),
            total_classes=await self._count(select(func.count(db_models.Classes.id)).filter(
                db_models.Classes.school_id == school_id,
                db_models.Classes.is_active.is_(True)
            )),
            active_homework=await self._count(select(func.count(db_models.Homework.id)).filter(
                db_models.Homework.school_id == school_id,
                db_models.Homework.is_active.is_(True),
                db_models.Homework.due_date >= today
            )),
            upcoming_exams=await self._count(select(func.count(db_models.Exams.id)).filter(
                db_models.Exams.school_id == school_id,
                db_models.Exams.status == ExamStatusEnum.UPCOMING.value,
                db_models.Exams.exam_date >= today
            )),
            attendance_rate=round(present / total_attendance * 100, 2) if total_attendance else 0.0,
        )

    ### Subjects ###

    async def get_subjects_for_api(self, current_user: db_models.Users) -> list[school_models.SubjectRead]:
        stmt = select(db_models.Subjects).filter(
            db_models.Subjects.school_id == current_user.school_id
        ).order_by(db_models.Subjects.name)
        result = await self.db.execute(stmt)
        return [school_models.SubjectRead.model_validate(s) for s in result.scalars().all()]

    async def create_subject_for_api(self, data: school_models.SubjectCreate, current_user: db_models.Users) -> school_models.SubjectRead:
        authorize_roles(current_user, [UserRole.ADMIN])
        code = data.code.upper()
        stmt = select(db_models.Subjects.id).filter(
            db_models.Subjects.school_id == current_user.school_id,
            db_models.Subjects.code == code
        )
        if (await self.db.execute(stmt)).first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Subject code already exists")

        subject = db_models.Subjects(
            school_id=current_user.school_id,
            name=data.name,
            code=code,
            description=data.description,
            color=data.color,
        )
        self.db.add(subject)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Subject code already exists")
        log.info(f"Admin {current_user.id} created subject {subject.id} ({code}).")
        return school_models.SubjectRead.model_validate(subject)

    ### Classes ###

    async def get_classes_for_api(self, current_user: db_models.Users) -> list[school_models.ClassRead]:
        """Active classes of the school; a teacher only sees the ones they teach."""
        if current_user.role == UserRole.TEACHER.value:
            teacher_id = await self.scope_filter.get_teacher_id(current_user)
            if teacher_id is None:
                return []
            classes = await self.scope_filter.get_teacher_classes(teacher_id, current_user.school_id)
        else:
            stmt = select(db_models.Classes).filter(
                db_models.Classes.school_id == current_user.school_id,
                db_models.Classes.is_active.is_(True)
            )
            classes = (await self.db.execute(stmt)).scalars().all()
        classes = sorted(classes, key=lambda c: (c.name, c.day_of_week if c.day_of_week is not None else -1))
        return [school_models.ClassRead.model_validate(c) for c in classes]

    async def create_class_for_api(self, data: school_models.ClassCreate, current_user: db_models.Users) -> school_models.ClassRead:
        authorize_roles(current_user, [UserRole.ADMIN])
        if data.teacher_id:
            teacher = await self.user_service.get_teacher_profile(data.teacher_id, current_user.school_id)
            if not teacher:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
        if data.subject_id:
            subject = await self.db.get(db_models.Subjects, data.subject_id)
            if not subject or subject.school_id != current_user.school_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")

        class_orm = db_models.Classes(school_id=current_user.school_id, **data.model_dump())
        self.db.add(class_orm)
        await self.db.commit()
        log.info(f"Admin {current_user.id} created class {class_orm.id} ({class_orm.name}).")
        return school_models.ClassRead.model_validate(class_orm)
