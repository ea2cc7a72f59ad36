'''
Exam scheduling and class notifications.
'''
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole, ExamStatusEnum, NotificationTypeEnum
from ..models import exam as exam_models
from .notification_service import NotificationService, NotificationIntent
from .permissions import authorize_roles
from .scope import ScopeFilter, ScopedResource
from .user_service import UserService


class ExamService:
    """
    Service for exam scheduling.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        scope_filter: Annotated[ScopeFilter, Depends(ScopeFilter)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        self.db = db
        self.scope_filter = scope_filter
        self.notification_service = notification_service
        self.user_service = user_service

    async def _get_exam_in_school(self, exam_id: UUID, school_id: UUID) -> db_models.Exams:
        stmt = select(db_models.Exams).filter(
            db_models.Exams.id == exam_id,
            db_models.Exams.school_id == school_id
        )
        exam = (await self.db.execute(stmt)).scalars().first()
        if not exam:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
        return exam

    async def _class_intents(self, exam: db_models.Exams, title: str, message: str) -> list[NotificationIntent]:
        students = await self.scope_filter.get_students_in_classes(exam.school_id, [exam.class_name])
        data = {"exam_id": exam.id, "exam_date": exam.exam_date, "subject_id": exam.subject_id}
        intents = []
        for student in students:
            intents.append(NotificationIntent(student.user_id, title, message, NotificationTypeEnum.EXAM, data))
            if student.parent_id:
                intents.append(NotificationIntent(
                    student.parent_id, title, f"{message} (for {student.name})", NotificationTypeEnum.EXAM, data
                ))
        return intents

    async def get_all_exams_for_api(
        self,
        current_user: db_models.Users,
        class_name: Optional[str] = None,
        subject_id: Optional[UUID] = None,
        status_filter: Optional[ExamStatusEnum] = None
    ) -> list[exam_models.ExamRead]:
        log.info(f"User {current_user.id} (Role: {current_user.role}) listing exams.")
        try:
            scope = await self.scope_filter.resolve(ScopedResource.EXAM, current_user)
            if scope.is_empty:
                return []

            stmt = scope.apply(select(db_models.Exams))
            if class_name:
                stmt = stmt.filter(db_models.Exams.class_name == class_name)
            if subject_id:
                stmt = stmt.filter(db_models.Exams.subject_id == subject_id)
            if status_filter:
                stmt = stmt.filter(db_models.Exams.status == status_filter.value)
            stmt = stmt.order_by(db_models.Exams.exam_date.asc(), db_models.Exams.start_time.asc())

            result = await self.db.execute(stmt)
            return [exam_models.ExamRead.model_validate(e) for e in result.scalars().all()]
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Database error in get_all_exams_for_api for user {current_user.id}: {e}", exc_info=True)
            raise

    async def create_exam_for_api(self, data: exam_models.ExamCreate, current_user: db_models.Users) -> exam_models.ExamRead:
        log.info(f"User {current_user.id} attempting to schedule exam for class {data.class_name}.")
        authorize_roles(current_user, [UserRole.ADMIN, UserRole.TEACHER])

        if current_user.role == UserRole.TEACHER.value:
            teacher_id = await self.scope_filter.get_teacher_id(current_user)
            if teacher_id is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Teacher profile not found")
        elif data.teacher_id:
            teacher = await self.user_service.get_teacher_profile(data.teacher_id, current_user.school_id)
            if not teacher:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
            teacher_id = teacher.id
        else:
            teacher_id = None

        subject = await self.db.get(db_models.Subjects, data.subject_id)
        if not subject or subject.school_id != current_user.school_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")

        exam = db_models.Exams(
            school_id=current_user.school_id,
            teacher_id=teacher_id,
            status=ExamStatusEnum.UPCOMING.value,
            **data.model_dump(exclude={"teacher_id"})
        )
        self.db.add(exam)
        await self.db.commit()
        exam_read = exam_models.ExamRead.model_validate(exam)
        log.info(f"Scheduled exam {exam.id} for class {exam.class_name} on {exam.exam_date}.")

        intents = await self._class_intents(
            exam, "Exam Scheduled", f"{subject.name}: {exam.title} on {exam.exam_date.isoformat()}"
        )
        await self.notification_service.fan_out(current_user.school_id, intents)
        return exam_read

    async def update_exam_for_api(self, exam_id: UUID, data: exam_models.ExamUpdate, current_user: db_models.Users) -> exam_models.ExamRead:
        authorize_roles(current_user, [UserRole.ADMIN, UserRole.TEACHER])
        exam = await self._get_exam_in_school(exam_id, current_user.school_id)
        if current_user.role == UserRole.TEACHER.value:
            teacher_id = await self.scope_filter.get_teacher_id(current_user)
            if exam.teacher_id is None or exam.teacher_id != teacher_id:
                log.warning(f"SECURITY: User {current_user.id} tried to modify exam {exam.id}.")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only modify your own exams")

        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
        start_time = update_data.get("start_time", exam.start_time)
        end_time = update_data.get("end_time", exam.end_time)
        if end_time <= start_time:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_time must be after start_time")

        if "status" in update_data:
            update_data["status"] = update_data["status"].value
        for key, value in update_data.items():
            setattr(exam, key, value)
        await self.db.commit()
        exam_read = exam_models.ExamRead.model_validate(exam)
        log.info(f"User {current_user.id} updated exam {exam.id}: {sorted(update_data)}.")

        intents = await self._class_intents(exam, "Exam Updated", f"{exam.title} ({exam.status}) on {exam.exam_date.isoformat()}")
        await self.notification_service.fan_out(current_user.school_id, intents)
        return exam_read

    async def delete_exam(self, exam_id: UUID, current_user: db_models.Users):
        authorize_roles(current_user, [UserRole.ADMIN])
        exam = await self._get_exam_in_school(exam_id, current_user.school_id)
        await self.db.delete(exam)
        await self.db.commit()
        log.info(f"Admin {current_user.id} deleted exam {exam_id}.")
