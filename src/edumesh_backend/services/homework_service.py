'''
Homework assignments and their submissions.
'''
from datetime import date, datetime, timezone
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.config import settings
from ..common.logger import log
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import (
    UserRole,
    SubmissionStatusEnum,
    NotificationTypeEnum,
    HomeworkStatusFilter,
)
from ..models import homework as homework_models
from ..models.common import Pagination
from .notification_service import NotificationService, NotificationIntent
from .permissions import authorize_roles
from .scope import ScopeFilter, ScopedResource, LinkedStudent
from .user_service import UserService


class HomeworkService:
    """
    Service for all business logic related to homework and submissions.
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

    # --- Internal Helpers ---

    async def _get_homework_in_school(self, homework_id: UUID, school_id: UUID) -> db_models.Homework:
        stmt = select(db_models.Homework).filter(
            db_models.Homework.id == homework_id,
            db_models.Homework.school_id == school_id
        )
        homework = (await self.db.execute(stmt)).scalars().first()
        if not homework:
            log.warning(f"Tried to fetch non-existing homework: {homework_id}")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Homework not found")
        return homework

    async def _authorize_write_access(self, homework: db_models.Homework, current_user: db_models.Users):
        """Admins may modify any homework of their school, teachers only their own."""
        authorize_roles(current_user, [UserRole.ADMIN, UserRole.TEACHER])
        if current_user.role == UserRole.TEACHER.value:
            teacher_id = await self.scope_filter.get_teacher_id(current_user)
            if homework.teacher_id != teacher_id:
                log.warning(f"SECURITY: User {current_user.id} tried to modify homework {homework.id} owned by {homework.teacher_id}.")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only modify your own homework")

    async def _class_intents(self, homework: db_models.Homework, title: str, message: str) -> list[NotificationIntent]:
        """Every student of the homework's class plus their parents."""
        students = await self.scope_filter.get_students_in_classes(homework.school_id, [homework.class_name])
        data = {"homework_id": homework.id, "subject_id": homework.subject_id, "due_date": homework.due_date}
        intents = []
        for student in students:
            intents.append(NotificationIntent(student.user_id, title, message, NotificationTypeEnum.HOMEWORK, data))
            if student.parent_id:
                intents.append(NotificationIntent(
                    student.parent_id, title, f"{message} (for {student.name})", NotificationTypeEnum.HOMEWORK, data
                ))
        return intents

    async def _submissions_for(self, homework_ids: list[UUID], students: list[LinkedStudent]) -> dict[UUID, list[homework_models.SubmissionRead]]:
        if not homework_ids or not students:
            return {}
        stmt = select(db_models.HomeworkSubmissions).filter(
            db_models.HomeworkSubmissions.homework_id.in_(homework_ids),
            db_models.HomeworkSubmissions.student_id.in_([s.id for s in students])
        )
        grouped: dict[UUID, list[homework_models.SubmissionRead]] = {}
        for submission in (await self.db.execute(stmt)).scalars().all():
            grouped.setdefault(submission.homework_id, []).append(
                homework_models.SubmissionRead.model_validate(submission)
            )
        return grouped

    # --- Public Read Methods (API-Facing) ---

    async def get_all_homework_for_api(
        self,
        current_user: db_models.Users,
        class_name: Optional[str] = None,
        subject_id: Optional[UUID] = None,
        status_filter: Optional[HomeworkStatusFilter] = None,
        page: int = 1,
        limit: Optional[int] = None
    ) -> tuple[list[homework_models.HomeworkRead], Pagination]:
        """
        Lists the homework visible to the caller, newest due date last.
        Students and parents also get their linked students' submissions.
        """
        limit = limit or settings.DEFAULT_PAGE_SIZE
        log.info(f"User {current_user.id} (Role: {current_user.role}) listing homework.")
        try:
            scope = await self.scope_filter.resolve(ScopedResource.HOMEWORK, current_user)
            if scope.is_empty:
                return [], Pagination.build(page, limit, 0)

            stmt = scope.apply(select(db_models.Homework)).filter(db_models.Homework.is_active.is_(True))
            if class_name:
                stmt = stmt.filter(db_models.Homework.class_name == class_name)
            if subject_id:
                stmt = stmt.filter(db_models.Homework.subject_id == subject_id)
            if status_filter == HomeworkStatusFilter.ACTIVE:
                stmt = stmt.filter(db_models.Homework.due_date >= date.today())
            elif status_filter == HomeworkStatusFilter.COMPLETED:
                stmt = stmt.filter(db_models.Homework.due_date < date.today())

            total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
            stmt = stmt.order_by(db_models.Homework.due_date.asc()).limit(limit).offset((page - 1) * limit)
            homework_orm = (await self.db.execute(stmt)).scalars().all()

            homework_list = [homework_models.HomeworkRead.model_validate(h) for h in homework_orm]
            if current_user.role in (UserRole.STUDENT.value, UserRole.PARENT.value):
                students = await self.scope_filter.get_linked_students(current_user)
                submissions = await self._submissions_for([h.id for h in homework_list], students)
                for homework in homework_list:
                    homework.submissions = submissions.get(homework.id, [])

            return homework_list, Pagination.build(page, limit, total)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Database error in get_all_homework_for_api for user {current_user.id}: {e}", exc_info=True)
            raise

    async def get_submissions_for_api(
        self,
        homework_id: UUID,
        current_user: db_models.Users,
        status_filter: Optional[SubmissionStatusEnum] = None,
        page: int = 1,
        limit: Optional[int] = None
    ) -> tuple[list[homework_models.SubmissionRead], Pagination]:
        limit = limit or settings.DEFAULT_PAGE_SIZE
        homework = await self._get_homework_in_school(homework_id, current_user.school_id)
        await self._authorize_write_access(homework, current_user)

        stmt = select(db_models.HomeworkSubmissions).filter(db_models.HomeworkSubmissions.homework_id == homework.id)
        if status_filter:
            stmt = stmt.filter(db_models.HomeworkSubmissions.status == status_filter.value)
        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
        stmt = stmt.order_by(db_models.HomeworkSubmissions.submitted_at.desc()).limit(limit).offset((page - 1) * limit)
        result = await self.db.execute(stmt)
        submissions = [homework_models.SubmissionRead.model_validate(s) for s in result.scalars().all()]
        return submissions, Pagination.build(page, limit, total)

    # --- Public Write Methods (API-Facing) ---

    async def create_homework_for_api(self, data: homework_models.HomeworkCreate, current_user: db_models.Users) -> homework_models.HomeworkRead:
        """
        Creates homework for a class and notifies its students and parents.
        """
        log.info(f"User {current_user.id} attempting to create homework for class {data.class_name}.")
        try:
            authorize_roles(current_user, [UserRole.ADMIN, UserRole.TEACHER])

            if current_user.role == UserRole.TEACHER.value:
                teacher_id = await self.scope_filter.get_teacher_id(current_user)
                if teacher_id is None:
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Teacher profile not found")
            else:
                if not data.teacher_id:
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="teacher_id is required when an admin creates homework")
                teacher = await self.user_service.get_teacher_profile(data.teacher_id, current_user.school_id)
                if not teacher:
                    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
                teacher_id = teacher.id

            subject = await self.db.get(db_models.Subjects, data.subject_id)
            if not subject or subject.school_id != current_user.school_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")

            new_homework = db_models.Homework(
                school_id=current_user.school_id,
                teacher_id=teacher_id,
                **data.model_dump(exclude={"teacher_id"})
            )
            self.db.add(new_homework)
            await self.db.commit()
            log.info(f"Created homework {new_homework.id} for class {new_homework.class_name}.")

            homework_read = homework_models.HomeworkRead.model_validate(new_homework)
            intents = await self._class_intents(
                new_homework, "New Homework Assigned", f"{subject.name}: {new_homework.title}"
            )
            school_id = current_user.school_id
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in create_homework_for_api for user {current_user.id}: {e}", exc_info=True)
            raise

        await self.notification_service.fan_out(school_id, intents)
        return homework_read

    async def update_homework_for_api(self, homework_id: UUID, data: homework_models.HomeworkUpdate, current_user: db_models.Users) -> homework_models.HomeworkRead:
        log.info(f"User {current_user.id} attempting to update homework {homework_id}.")
        homework = await self._get_homework_in_school(homework_id, current_user.school_id)
        if not homework.is_active:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Homework not found")
        await self._authorize_write_access(homework, current_user)

        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
        for key, value in update_data.items():
            setattr(homework, key, value)
        await self.db.commit()

        homework_read = homework_models.HomeworkRead.model_validate(homework)
        intents = await self._class_intents(homework, "Homework Updated", f"{homework.title} was updated")
        await self.notification_service.fan_out(homework_read.school_id, intents)
        return homework_read

    async def delete_homework(self, homework_id: UUID, current_user: db_models.Users):
        """Soft delete: the row stays, is_active goes false."""
        homework = await self._get_homework_in_school(homework_id, current_user.school_id)
        await self._authorize_write_access(homework, current_user)
        homework.is_active = False
        await self.db.commit()
        log.info(f"User {current_user.id} deactivated homework {homework_id}.")

    async def submit_homework_for_api(self, homework_id: UUID, data: homework_models.SubmissionCreate, current_user: db_models.Users) -> homework_models.SubmissionRead:
        """
        Records a student's submission; late when made after the due date.
        A second submission for the same homework is a conflict.
        """
        authorize_roles(current_user, [UserRole.STUDENT])
        student = await self.user_service.get_student_profile_by_user(current_user.id)
        if not student:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student profile not found")

        homework = await self._get_homework_in_school(homework_id, current_user.school_id)
        if not homework.is_active or homework.class_name != student.class_name:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Homework not found")

        existing_stmt = select(db_models.HomeworkSubmissions.id).filter(
            db_models.HomeworkSubmissions.homework_id == homework.id,
            db_models.HomeworkSubmissions.student_id == student.id
        )
        if (await self.db.execute(existing_stmt)).scalar_one_or_none() is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Homework already submitted")

        submission_status = SubmissionStatusEnum.LATE if date.today() > homework.due_date else SubmissionStatusEnum.SUBMITTED
        submission = db_models.HomeworkSubmissions(
            homework_id=homework.id,
            student_id=student.id,
            notes=data.notes,
            attachments=data.attachments,
            status=submission_status.value,
        )
        self.db.add(submission)
        try:
            await self.db.commit()
        except IntegrityError:
            # a concurrent submission won the unique (homework_id, student_id) race
            await self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Homework already submitted")

        submission_read = homework_models.SubmissionRead.model_validate(submission)
        log.info(f"Student {student.id} submitted homework {homework.id} ({submission_status.value}).")

        teacher = await self.db.get(db_models.Teachers, homework.teacher_id)
        if teacher:
            await self.notification_service.fan_out(homework.school_id, [NotificationIntent(
                teacher.user_id,
                "Homework Submitted",
                f"{current_user.name} submitted {homework.title}",
                NotificationTypeEnum.HOMEWORK,
                {"homework_id": homework.id, "submission_id": submission_read.id},
            )])
        return submission_read

    async def grade_submission_for_api(self, submission_id: UUID, data: homework_models.GradeSubmission, current_user: db_models.Users) -> homework_models.SubmissionRead:
        authorize_roles(current_user, [UserRole.ADMIN, UserRole.TEACHER])
        submission = await self.db.get(db_models.HomeworkSubmissions, submission_id)
        if not submission:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
        homework = await self.db.get(db_models.Homework, submission.homework_id)
        if not homework or homework.school_id != current_user.school_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
        await self._authorize_write_access(homework, current_user)

        if data.marks_obtained > homework.max_marks:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Marks cannot exceed maximum marks ({homework.max_marks})"
            )

        submission.marks_obtained = data.marks_obtained
        submission.feedback = data.feedback
        submission.status = SubmissionStatusEnum.GRADED.value
        submission.graded_at = datetime.now(timezone.utc)
        await self.db.commit()
        submission_read = homework_models.SubmissionRead.model_validate(submission)
        log.info(f"User {current_user.id} graded submission {submission_id}: {data.marks_obtained}/{homework.max_marks}.")

        student = await self.db.get(db_models.Students, submission.student_id)
        if student:
            title = "Homework Graded"
            message = f"{homework.title}: {data.marks_obtained}/{homework.max_marks}"
            payload = {"homework_id": homework.id, "submission_id": submission_read.id}
            intents = [NotificationIntent(student.user_id, title, message, NotificationTypeEnum.HOMEWORK, payload)]
            if student.parent_id:
                intents.append(NotificationIntent(student.parent_id, title, message, NotificationTypeEnum.HOMEWORK, payload))
            await self.notification_service.fan_out(homework.school_id, intents)
        return submission_read
